# SPDX-License-Identifier: MIT
"""Commands and the post-build command pipeline.

A Command is an ordered argument vector with an optional working
directory; it renders to a POSIX or Windows shell line for build files
and runs through a CommandRunner for direct execution.

Post-build commands (Strip, Delete, CreateDir) are attached to linked
entities and run after the entity's primary action has succeeded.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, Union, runtime_checkable

from rtbuild.core.errors import PostBuildFailure
from rtbuild.core.flags import Family, ToolchainFlag, project_flags, tag

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rtbuild.core.context import BuildContext
    from rtbuild.core.entity import LinkedEntity
    from rtbuild.core.platform import TargetPlatform

logger = logging.getLogger(__name__)


def to_posix_path(path: str | Path) -> str:
    """Render a path with forward slashes."""
    return str(path).replace("\\", "/")


def to_windows_path(path: str | Path) -> str:
    """Render a path with backslashes and no trailing separator."""
    text = str(path).replace("/", "\\")
    if len(text) > 1 and text.endswith("\\"):
        text = text[:-1]
    return text


def native_path(path: str | Path, windows: bool) -> str:
    """Render a path in the convention of the target platform."""
    return to_windows_path(path) if windows else to_posix_path(path)


@dataclass(frozen=True)
class Command:
    """A process invocation.

    Attributes:
        argv: Executable followed by its arguments. For shell commands
            this holds a single shell line.
        cwd: Working directory, or None for the caller's directory.
        shell: True if argv[0] is a shell line rather than an executable.
    """

    argv: tuple[str, ...]
    cwd: Path | None = None
    shell: bool = False

    @classmethod
    def from_shell(cls, line: str, cwd: Path | None = None) -> Command:
        return cls((line,), cwd=cwd, shell=True)

    @property
    def executable(self) -> str:
        return self.argv[0] if self.argv else ""

    def to_shell(self, windows: bool = False) -> str:
        """Render as a single shell line.

        Arguments are quoted for the POSIX shell or for cmd.exe; arguments
        that need no quoting are emitted unchanged.
        """
        if self.shell:
            return self.argv[0]
        if windows:
            return subprocess.list2cmdline(list(self.argv))
        return shlex.join(self.argv)

    def __str__(self) -> str:
        return self.to_shell()


@dataclass(frozen=True)
class CommandResult:
    """Outcome of running a Command."""

    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class CommandRunner(Protocol):
    """Runs commands for the execution backend.

    Tests substitute a fake runner that records commands instead of
    spawning processes.
    """

    def run(self, command: Command) -> CommandResult:
        """Run a command to completion and return its result."""
        ...


class SubprocessRunner:
    """CommandRunner that spawns real processes.

    Standard output and standard error are captured together so that a
    failure can report the full toolchain output.
    """

    def run(self, command: Command) -> CommandResult:
        logger.debug("Running: %s", command)
        args: str | list[str] = command.argv[0] if command.shell else list(command.argv)
        try:
            proc = subprocess.run(
                args,
                cwd=command.cwd,
                shell=command.shell,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            return CommandResult(returncode=127, output=str(e))
        return CommandResult(returncode=proc.returncode, output=proc.stdout or "")


# Post-build commands


DEFAULT_STRIP_OPTIONS: tuple[ToolchainFlag, ...] = (
    tag(Family.GNU, "-S"),
    tag(Family.GNU, "-x"),
    tag(Family.GNU, "-X"),
)


@dataclass(frozen=True)
class Strip:
    """Strip symbols from a linked file.

    Attributes:
        file: The file to strip.
        options: Strip options; None uses the strip tool's defaults.
    """

    file: Path
    options: tuple[ToolchainFlag, ...] | None = None


@dataclass(frozen=True)
class Delete:
    """Delete a file or directory tree."""

    path: Path
    directory: bool = False


@dataclass(frozen=True)
class CreateDir:
    """Create a directory and any missing parents."""

    path: Path


PostBuildCommand = Union[Strip, Delete, CreateDir]


@dataclass
class StripTool:
    """The strip utility.

    Attributes:
        executable: Program to run (default 'strip').
        options: Default options used when a Strip command gives none.
    """

    executable: str = "strip"
    options: tuple[ToolchainFlag, ...] = field(
        default_factory=lambda: DEFAULT_STRIP_OPTIONS
    )
    family: Family = Family.GNU

    @property
    def name(self) -> str:
        return "strip"

    def command(self, file: str | Path, options: Sequence[ToolchainFlag] | None = None) -> Command:
        flags = project_flags(self.family, self.options if options is None else options)
        return Command((self.executable, *flags, to_posix_path(file)))


def render_post_build(
    cmd: PostBuildCommand,
    platform: TargetPlatform,
    strip: StripTool | None = None,
) -> str | None:
    """Render a post-build command as a shell line for the target platform.

    Returns None when the command has no equivalent (strip on Windows, or
    strip without a strip tool).
    """
    windows = platform.is_windows
    if isinstance(cmd, CreateDir):
        if windows:
            return f"mkdir {to_windows_path(cmd.path)}"
        return f"mkdir -p {to_posix_path(cmd.path)}"
    if isinstance(cmd, Delete):
        if windows:
            if cmd.directory:
                return f"rmdir /S /Q {to_windows_path(cmd.path)}"
            return f"del {to_windows_path(cmd.path)}"
        return f"rm -fr {to_posix_path(cmd.path)}"
    if isinstance(cmd, Strip):
        if windows or strip is None:
            return None
        return strip.command(cmd.file, cmd.options).to_shell()
    raise TypeError(f"unknown post-build command: {cmd!r}")


def _resolve(path: Path, cwd: Path | None) -> Path:
    if cwd is None or path.is_absolute():
        return path
    return cwd / path


def run_post_build_command(
    cmd: PostBuildCommand,
    context: BuildContext,
    runner: CommandRunner,
    cwd: Path | None = None,
) -> CommandResult | None:
    """Run one post-build command.

    CreateDir and Delete act on the filesystem directly; Strip spawns the
    strip tool. Returns None for commands that are skipped.
    """
    if isinstance(cmd, CreateDir):
        target = _resolve(cmd.path, cwd)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return CommandResult(returncode=1, output=str(e))
        return CommandResult(returncode=0)
    if isinstance(cmd, Delete):
        target = _resolve(cmd.path, cwd)
        try:
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()
        except OSError as e:
            return CommandResult(returncode=1, output=str(e))
        return CommandResult(returncode=0)
    if isinstance(cmd, Strip):
        if context.platform.is_windows or context.strip is None:
            logger.debug("Skipping strip of %s", cmd.file)
            return None
        command = context.strip.command(cmd.file, cmd.options)
        if cwd is not None:
            command = Command(command.argv, cwd=cwd)
        return runner.run(command)
    raise TypeError(f"unknown post-build command: {cmd!r}")


def describe_post_build(cmd: PostBuildCommand, context: BuildContext) -> str:
    """The command line shown when a post-build command fails."""
    line = render_post_build(cmd, context.platform, context.strip)
    return line if line is not None else repr(cmd)


def run_post_build(
    entity: LinkedEntity,
    primary_ok: bool,
    context: BuildContext,
    runner: CommandRunner,
    cwd: Path | None = None,
) -> int:
    """Run an entity's post-build commands in list order.

    Nothing runs unless the primary action succeeded. The first failing
    command aborts the remaining ones; commands that already completed
    are not undone.

    Args:
        entity: The linked entity owning the commands.
        primary_ok: Whether the entity's link step succeeded.
        context: Active build context.
        runner: Runs spawned commands.
        cwd: Directory relative paths are resolved against.

    Returns:
        The number of commands that ran.

    Raises:
        PostBuildFailure: If a command fails.
    """
    if not primary_ok:
        logger.debug("Not running post-build for %s", entity.name)
        return 0
    ran = 0
    for cmd in entity.post_build:
        result = run_post_build_command(cmd, context, runner, cwd)
        if result is None:
            continue
        ran += 1
        if not result.ok:
            raise PostBuildFailure(
                entity.name,
                describe_post_build(cmd, context),
                output=result.output,
                returncode=result.returncode,
            )
    return ran


__all__ = [
    "Command",
    "CommandResult",
    "CommandRunner",
    "CreateDir",
    "Delete",
    "PostBuildCommand",
    "Strip",
    "StripTool",
    "SubprocessRunner",
    "native_path",
    "render_post_build",
    "run_post_build",
]
