# SPDX-License-Identifier: MIT
"""GNU Makefile and NMake generators.

Both generators share one rule model: the same Solution always yields the
same list of Rules, so the two backends agree on target names and
dependency sets by construction. They only differ in syntax:

- GNU make: ``NAME?=default`` for defaults, a trailing ``.PHONY:`` line,
  POSIX shell commands, forward slashes.
- NMake: ``NAME=default``, no ``.PHONY``, cmd.exe commands, backslashes.

Every solution target gets a rule named after it. Linked entities get an
additional file rule for their output; objects get one compile rule each,
emitted once even when several targets share them.

Directory creation is left to the solution (its ``folders`` target).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Union

from rtbuild.core.commands import (
    Command,
    CreateDir,
    Delete,
    Strip,
    native_path,
    render_post_build,
)
from rtbuild.core.entity import (
    ExternalLibraryRef,
    LinkedEntity,
    ObjectFile,
    ObjectLibrary,
    PhonyTarget,
    Variable,
)
from rtbuild.core.errors import GenerateError
from rtbuild.core.plan import flatten
from rtbuild.core.platform import platform_for
from rtbuild.generators.generator import BaseGenerator, write_if_changed

if TYPE_CHECKING:
    from rtbuild.core.context import BuildContext
    from rtbuild.core.entity import Entity, PhonyCommand
    from rtbuild.core.plan import CompileStep, Plan
    from rtbuild.core.solution import Solution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rule:
    """One makefile rule.

    Attributes:
        target: Target name or output file.
        inputs: File prerequisites.
        depends: Solution targets that must be built first.
        commands: Recipe lines, already in the shell dialect.
        phony: The target is not a file.
        solution_target: The rule stands for a solution target.
    """

    target: str
    inputs: tuple[str, ...] = ()
    depends: tuple[str, ...] = ()
    commands: tuple[str, ...] = ()
    phony: bool = False
    solution_target: bool = False

    @property
    def prerequisites(self) -> tuple[str, ...]:
        return self.depends + tuple(i for i in self.inputs if i not in self.depends)


@dataclass(frozen=True)
class VariableLine:
    """A variable assignment at the top of the makefile."""

    name: str
    value: str
    default: bool = False


MakefileItem = Union[Rule, VariableLine]


def _escape(command: str) -> str:
    """Escape a shell line for a recipe; make expands '$'."""
    return command.replace("$", "$$")


class BaseMakefileGenerator(BaseGenerator):
    """Rule building shared by the GNU make and NMake generators.

    Attributes:
        windows: Paths use backslashes and commands use cmd.exe.
    """

    windows: bool = False
    default_assign: str = "?="
    emit_phony: bool = True

    def __init__(self, name: str, context: BuildContext) -> None:
        super().__init__(name, context)
        self._shell_platform = platform_for("windows" if self.windows else "posix")

    def path(self, path: str | Path) -> str:
        return native_path(path, self.windows)

    # Rule model

    def items(self, solution: Solution) -> list[MakefileItem]:
        """Build the variable lines and rules for a solution.

        Raises:
            CyclicDependency: If the solution contains a cycle.
            GenerateError: If a target cannot be expressed as a rule.
        """
        solution.build_order()
        items: list[MakefileItem] = []
        compiled: dict[str, Rule] = {}
        for entity in solution:
            if isinstance(entity, Variable):
                if entity.value is not None:
                    items.append(VariableLine(entity.name, entity.value))
                else:
                    items.append(VariableLine(entity.name, str(entity.default), True))
                continue
            items.extend(self._target_rules(solution, entity, compiled))
        return items

    def rules(self, solution: Solution) -> list[Rule]:
        return [item for item in self.items(solution) if isinstance(item, Rule)]

    def target_names(self, solution: Solution) -> list[str]:
        """Names of the rules that stand for solution targets."""
        return [r.target for r in self.rules(solution) if r.solution_target]

    def dependency_map(self, solution: Solution) -> dict[str, tuple[str, ...]]:
        """Solution-target dependencies of each solution-target rule."""
        return {r.target: r.depends for r in self.rules(solution) if r.solution_target}

    def _target_rules(
        self, solution: Solution, entity: Entity, compiled: dict[str, Rule]
    ) -> list[Rule]:
        name = entity.name
        depends = tuple(solution.dependencies_of(name))
        if isinstance(entity, PhonyTarget):
            variables = tuple(
                f"$({dep.name})"
                for dep in (
                    solution.resolve(d) if isinstance(d, str) else d
                    for d in entity.depends
                )
                if isinstance(dep, Variable)
            )
            return [
                Rule(
                    target=name,
                    inputs=variables,
                    depends=depends,
                    commands=tuple(
                        c for c in (self.phony_command(c) for c in entity.commands) if c
                    ),
                    phony=True,
                    solution_target=True,
                )
            ]
        if isinstance(entity, ExternalLibraryRef):
            return [Rule(target=name, phony=True, solution_target=True)]

        plan = flatten(entity, solution)
        # Object library targets repeat objects their linked users already built.
        warn = not isinstance(entity, ObjectLibrary)
        rules = self._compile_rules(plan, compiled, warn=warn)
        if isinstance(entity, ObjectFile):
            output = self.path(entity.output)
            if output != name:
                rules.append(
                    Rule(
                        target=name,
                        inputs=(output,),
                        depends=depends,
                        phony=True,
                        solution_target=True,
                    )
                )
            return rules
        if isinstance(entity, ObjectLibrary):
            rules.append(
                Rule(
                    target=name,
                    inputs=tuple(self.path(o) for o in plan.outputs),
                    depends=depends,
                    phony=True,
                    solution_target=True,
                )
            )
            return rules
        if isinstance(entity, LinkedEntity):
            rules.extend(self._link_rules(entity, plan, name, depends))
            return rules
        raise GenerateError(f"cannot generate a rule for {name}")

    def _compile_rules(
        self, plan: Plan, compiled: dict[str, Rule], warn: bool = True
    ) -> list[Rule]:
        rules: list[Rule] = []
        for step in plan.compile_steps:
            rule = self._compile_rule(step)
            existing = compiled.get(rule.target)
            if existing is not None:
                if warn and existing.commands != rule.commands:
                    logger.warning(
                        "%s is built with different settings by %s; keeping the first",
                        rule.target,
                        plan.target,
                    )
                continue
            compiled[rule.target] = rule
            rules.append(rule)
        return rules

    def _compile_rule(self, step: CompileStep) -> Rule:
        command = self.context.compiler.compile(step)
        return Rule(
            target=self.path(step.output),
            inputs=(self.path(step.source),),
            commands=(_escape(command.to_shell(self.windows)),),
        )

    def _link_rules(
        self, entity: LinkedEntity, plan: Plan, name: str, depends: tuple[str, ...]
    ) -> list[Rule]:
        if plan.link_step is None:
            raise GenerateError(f"{name}: nothing to link")
        inputs: list[str] = []
        for item in plan.link_step.inputs:
            if isinstance(item, Path):
                inputs.append(self.path(item))
            elif isinstance(item, LinkedEntity):
                inputs.append(self.path(item.output))
            elif isinstance(item, ExternalLibraryRef) and item.by_path:
                inputs.append(self.path(item.output))
        commands = [
            _escape(self.context.linker.link(plan.link_step).to_shell(self.windows))
        ]
        for cmd in plan.post_build:
            line = self.post_build_command(cmd)
            if line:
                commands.append(line)
        output = self.path(entity.output)
        if output == name:
            return [
                Rule(
                    target=output,
                    inputs=tuple(inputs),
                    depends=depends,
                    commands=tuple(commands),
                    solution_target=True,
                )
            ]
        return [
            Rule(
                target=name,
                inputs=(output,),
                depends=depends,
                phony=True,
                solution_target=True,
            ),
            Rule(target=output, inputs=tuple(inputs), commands=tuple(commands)),
        ]

    # Commands

    def post_build_command(self, cmd: Strip | Delete | CreateDir) -> str | None:
        strip = self.context.strip
        line = render_post_build(cmd, self._shell_platform, strip)
        return _escape(line) if line else None

    def phony_command(self, cmd: PhonyCommand) -> str | None:
        if isinstance(cmd, str):
            # Already make syntax; $(NAME) references stay for make to expand.
            return cmd
        if isinstance(cmd, Command):
            return _escape(cmd.to_shell(self.windows))
        return self.post_build_command(cmd)

    # Rendering

    def render(self, solution: Solution) -> str:
        """Render the makefile text for a solution."""
        items = self.items(solution)
        lines: list[str] = [f"# Generated by rtbuild for {solution.name}. Do not edit.", ""]
        variables = [i for i in items if isinstance(i, VariableLine)]
        for var in variables:
            op = self.default_assign if var.default else "="
            lines.append(f"{var.name}{op}{var.value}")
        if variables:
            lines.append("")
        phony: list[str] = []
        for item in items:
            if not isinstance(item, Rule):
                continue
            prereqs = " ".join(item.prerequisites)
            lines.append(f"{item.target}: {prereqs}".rstrip())
            lines.extend(f"\t{c}" for c in item.commands)
            lines.append("")
            if item.phony:
                phony.append(item.target)
        if self.emit_phony and phony:
            lines.append(".PHONY: " + " ".join(phony))
        return "\n".join(lines) + "\n"

    def generate(self, path: Path, solution: Solution) -> list[Path]:
        logger.info("Generating %s for %s", path, solution.name)
        write_if_changed(path, self.render(solution))
        return [path]


class MakefileGenerator(BaseMakefileGenerator):
    """GNU make generator."""

    windows = False
    default_assign = "?="
    emit_phony = True

    def __init__(self, context: BuildContext) -> None:
        super().__init__("makefile", context)


class NMakeGenerator(BaseMakefileGenerator):
    """Microsoft NMake generator."""

    windows = True
    default_assign = "="
    emit_phony = False

    def __init__(self, context: BuildContext) -> None:
        super().__init__("nmake", context)
