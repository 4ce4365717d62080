# SPDX-License-Identifier: MIT
"""Direct execution backend.

Builds a Solution by running toolchain commands in dependency order:

1. Targets are ordered topologically (requested targets keep the order
   they were asked for); everything is flattened and every
   command is rendered before the first process is spawned, so
   configuration errors never leave a half-built tree.
2. Per target, missing output directories are created (each at most once
   per run), the compile steps run on a worker pool bounded by ``jobs``,
   the link step runs once all of them succeeded, then the post-build
   commands run in order.
3. A failing target skips every target that depends on it. Independent
   targets still run when ``keep_going`` is set; otherwise the build
   stops, like make does.

A failing compile step cancels the compile steps of the same target that
have not started yet. Processes are never retried.
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING

from rtbuild.core.commands import (
    Command,
    SubprocessRunner,
    describe_post_build,
    run_post_build,
    run_post_build_command,
)
from rtbuild.core.entity import LinkedEntity
from rtbuild.core.errors import (
    BuildFailure,
    CommandFailure,
    CompileFailure,
    ConfigurationError,
    LinkFailure,
)
from rtbuild.core.plan import flatten

if TYPE_CHECKING:
    from collections.abc import Iterable
    from concurrent.futures import Future

    from rtbuild.core.commands import CommandResult, CommandRunner
    from rtbuild.core.context import BuildContext
    from rtbuild.core.plan import CompileStep, Plan
    from rtbuild.core.solution import Solution

logger = logging.getLogger(__name__)


@dataclass
class BuildReport:
    """Outcome of an execution run.

    Attributes:
        succeeded: Targets that completed, in build order.
        failed: Failure of each failed target.
        skipped: Targets not run because a dependency failed or the
            build stopped.
    """

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, BuildFailure] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def exit_status(self) -> int:
        return 0 if self.ok else 1


@dataclass
class _PreparedTarget:
    name: str
    plan: Plan
    compile_commands: list[tuple[CompileStep, Command]]
    link_command: Command | None
    depends: list[str]


class Executor:
    """Runs a Solution directly.

    Example:
        executor = Executor(context, jobs=4)
        report = executor.run(solution)
        if not report.ok:
            ...
    """

    def __init__(
        self,
        context: BuildContext,
        jobs: int = 1,
        keep_going: bool = False,
        runner: CommandRunner | None = None,
        root: Path | None = None,
    ) -> None:
        """Initialize an executor.

        Args:
            context: Platform and tools to build with.
            jobs: Maximum number of concurrent compile steps.
            keep_going: Continue with independent targets after a failure.
            runner: Runs commands; defaults to spawning processes.
            root: Directory commands run in and relative paths refer to.
        """
        if jobs < 1:
            raise ConfigurationError(f"jobs must be at least 1, not {jobs}")
        if root is not None and not root.is_dir():
            raise ConfigurationError(f"build directory {root} does not exist")
        self.context = context
        self.jobs = jobs
        self.keep_going = keep_going
        self.runner: CommandRunner = runner if runner is not None else SubprocessRunner()
        self.root = root
        self._created_dirs: set[Path] = set()
        self._compiled: dict[Path, Command] = {}

    def _with_cwd(self, command: Command) -> Command:
        if self.root is None or command.cwd is not None:
            return command
        return replace(command, cwd=self.root)

    def _prepare(self, solution: Solution, names: Iterable[str]) -> list[_PreparedTarget]:
        prepared: list[_PreparedTarget] = []
        for name in names:
            entity = solution.resolve(name)
            plan = flatten(entity, solution)
            compile_commands = [
                (step, self._with_cwd(self.context.compiler.compile(step)))
                for step in plan.compile_steps
            ]
            link_command = None
            if plan.link_step is not None:
                link_command = self._with_cwd(self.context.linker.link(plan.link_step))
            prepared.append(
                _PreparedTarget(
                    name=name,
                    plan=plan,
                    compile_commands=compile_commands,
                    link_command=link_command,
                    depends=solution.dependencies_of(name),
                )
            )
        return prepared

    def _select(self, solution: Solution, targets: Iterable[str] | None) -> list[str]:
        order = solution.build_order()
        if targets is None:
            return order
        # Requested targets run in the order given, each after its dependencies.
        selected: list[str] = []

        def visit(name: str) -> None:
            if name in selected:
                return
            solution.resolve(name)
            for dep in solution.dependencies_of(name):
                visit(dep)
            selected.append(name)

        for name in targets:
            visit(name)
        return selected

    def run(self, solution: Solution, targets: Iterable[str] | None = None) -> BuildReport:
        """Build a solution.

        Args:
            solution: The targets to build.
            targets: Build only these targets, in this order, each after
                its dependencies.

        Returns:
            A BuildReport; build failures are reported there, not raised.

        Raises:
            CyclicDependency: If the targets form a cycle.
            ConfigurationError: If the solution is inconsistent.
        """
        names = self._select(solution, targets)
        prepared = self._prepare(solution, names)
        report = BuildReport()
        unavailable: set[str] = set()
        stopped = False

        for target in prepared:
            blocked = [d for d in target.depends if d in unavailable]
            if stopped or blocked:
                if blocked:
                    logger.warning(
                        "Skipping %s: dependency %s failed", target.name, blocked[0]
                    )
                report.skipped.append(target.name)
                unavailable.add(target.name)
                continue
            try:
                self._build_target(solution, target)
            except BuildFailure as e:
                logger.error("%s", e)
                if e.output:
                    logger.error("%s", e.output.rstrip())
                report.failed[target.name] = e
                unavailable.add(target.name)
                if not self.keep_going:
                    stopped = True
            else:
                report.succeeded.append(target.name)

        logger.info(
            "%d succeeded, %d failed, %d skipped",
            len(report.succeeded),
            len(report.failed),
            len(report.skipped),
        )
        return report

    def _create_dirs(self, dirs: Iterable[Path]) -> None:
        for d in dirs:
            if d in self._created_dirs:
                continue
            path = d if self.root is None or d.is_absolute() else self.root / d
            logger.debug("Creating directory %s", path)
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ConfigurationError(f"cannot create directory {path}: {e}") from e
            self._created_dirs.add(d)

    def _build_target(self, solution: Solution, target: _PreparedTarget) -> None:
        plan = target.plan
        logger.info("Building %s", target.name)
        self._create_dirs(plan.dirs)
        self._compile(target.name, target.compile_commands)

        if target.link_command is not None:
            logger.info("Linking %s", plan.link_step.output if plan.link_step else "")
            result = self.runner.run(target.link_command)
            if not result.ok:
                raise LinkFailure(
                    target.name,
                    self._display(target.link_command),
                    output=result.output,
                    returncode=result.returncode,
                )

        entity = solution.resolve(target.name)
        if isinstance(entity, LinkedEntity):
            run_post_build(entity, True, self.context, self.runner, self.root)

        for cmd in plan.commands:
            self._run_phony_command(solution, target.name, cmd)

    def _display(self, command: Command) -> str:
        return command.to_shell(self.context.windows)

    def _compile(self, name: str, commands: list[tuple[CompileStep, Command]]) -> None:
        todo = [
            (step, cmd)
            for step, cmd in commands
            if self._compiled.get(step.output) != cmd
        ]
        if not todo:
            return

        with ThreadPoolExecutor(max_workers=self.jobs) as pool:
            futures: dict[Future[CommandResult], tuple[CompileStep, Command]] = {}
            for step, cmd in todo:
                futures[pool.submit(self._run_compile, step, cmd)] = (step, cmd)
            pending = set(futures)
            failure: CompileFailure | None = None
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    if future.cancelled():
                        continue
                    step, cmd = futures[future]
                    result = future.result()
                    if result.ok:
                        self._compiled[step.output] = cmd
                    elif failure is None:
                        failure = CompileFailure(
                            name,
                            self._display(cmd),
                            output=result.output,
                            returncode=result.returncode,
                        )
                if failure is not None:
                    for future in pending:
                        future.cancel()
            if failure is not None:
                raise failure

    def _run_compile(self, step: CompileStep, cmd: Command) -> CommandResult:
        logger.info("Compiling %s", step.source)
        return self.runner.run(cmd)

    def _run_phony_command(self, solution: Solution, name: str, cmd: object) -> None:
        if isinstance(cmd, str):
            command = self._with_cwd(Command.from_shell(solution.reify(cmd)))
        elif isinstance(cmd, Command):
            command = self._with_cwd(cmd)
        else:
            result = run_post_build_command(
                cmd,  # type: ignore[arg-type]
                self.context,
                self.runner,
                self.root,
            )
            if result is not None and not result.ok:
                raise CommandFailure(
                    name,
                    describe_post_build(cmd, self.context),  # type: ignore[arg-type]
                    output=result.output,
                    returncode=result.returncode,
                )
            return
        logger.info("Running %s", command.to_shell(self.context.windows))
        result = self.runner.run(command)
        if not result.ok:
            raise CommandFailure(
                name,
                self._display(command),
                output=result.output,
                returncode=result.returncode,
            )
