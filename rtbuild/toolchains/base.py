# SPDX-License-Identifier: MIT
"""Compiler and linker protocols and base implementations.

A compiler turns a CompileStep into a Command; a linker turns a LinkStep
into a Command. Both belong to a toolchain family, which decides which
tagged flags they receive and how paths are written. Executables default
to the tool's conventional name and can be overridden by the caller; they
are never searched for.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, Protocol, runtime_checkable

from rtbuild.core.commands import Command, native_path
from rtbuild.core.entity import ExternalLibraryRef, LinkedEntity
from rtbuild.core.errors import ConfigurationError
from rtbuild.core.flags import Family, project_flags

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rtbuild.core.entity import Debug, Optimization
    from rtbuild.core.flags import ToolchainFlag
    from rtbuild.core.plan import CompileStep, LinkInput, LinkStep

logger = logging.getLogger(__name__)


@runtime_checkable
class Compiler(Protocol):
    """Protocol for compilers."""

    @property
    def name(self) -> str:
        """Compiler name ('gcc', 'clang', 'cl', 'tcc')."""
        ...

    @property
    def family(self) -> Family:
        """Flag family the compiler accepts."""
        ...

    executable: str

    def compile(self, step: CompileStep) -> Command:
        """Return the command that performs a compile step."""
        ...


@runtime_checkable
class Linker(Protocol):
    """Protocol for linkers."""

    @property
    def name(self) -> str:
        """Linker name ('ld', 'llvm-link', 'link')."""
        ...

    @property
    def family(self) -> Family:
        """Flag family the linker accepts."""
        ...

    executable: str

    def link(self, step: LinkStep) -> Command:
        """Return the command that performs a link step."""
        ...


class BaseTool(ABC):
    """Common behaviour of compilers and linkers.

    Subclasses set ``tool_name``, ``family`` and ``default_executable``.
    """

    tool_name: ClassVar[str] = ""
    family: ClassVar[Family] = Family.GNU
    default_executable: ClassVar[str] = ""

    def __init__(self, executable: str | Path | None = None) -> None:
        """Initialize a tool.

        Args:
            executable: Program to run instead of the default.
        """
        self.executable = (
            str(executable) if executable is not None else self.default_executable
        )

    @property
    def name(self) -> str:
        return self.tool_name

    @property
    def windows_paths(self) -> bool:
        return self.family is Family.MSC

    def path(self, path: str | Path) -> str:
        """Render a path the way this tool expects it."""
        return native_path(path, self.windows_paths)

    def flags(self, flags: Iterable[ToolchainFlag]) -> list[str]:
        """Project flags for this tool's family."""
        return project_flags(self.family, flags)

    def default_vars(self) -> dict[str, object]:
        return {"cmd": self.executable, "family": self.family.value}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.executable!r})"

    def __eq__(self, other: object) -> bool:
        return (
            type(self) is type(other)
            and self.executable == other.executable  # type: ignore[attr-defined]
        )

    def __hash__(self) -> int:
        return hash((type(self), self.executable))


class BaseCompiler(BaseTool):
    """Compiler with a ``exe mode [pic] includes defines opt debug cflags out src``
    command layout.

    Subclasses provide the spelling of each part.
    """

    include_prefix: ClassVar[str] = "-I"
    define_prefix: ClassVar[str] = "-D"

    def compile(self, step: CompileStep) -> Command:
        settings = step.settings
        args: list[str] = [self.executable]
        args.extend(self.mode_flags(step.preprocess))
        if step.pic:
            args.extend(self.pic_flags())
        args.extend(f"{self.include_prefix}{self.path(i)}" for i in settings.includes)
        args.extend(
            f"{self.define_prefix}{d}" for d in self.flags(settings.definitions)
        )
        args.extend(self.optimization_flags(settings.optimization))
        args.extend(self.debug_flags(settings.debug))
        args.extend(self.flags(settings.cflags))
        args.extend(self.output_flags(step.output, step.preprocess))
        args.append(self.path(step.source))
        return Command(tuple(args))

    @abstractmethod
    def mode_flags(self, preprocess: bool) -> list[str]:
        """Flags selecting compile-only or preprocess-only mode."""
        ...

    def pic_flags(self) -> list[str]:
        return ["-fPIC"]

    @abstractmethod
    def optimization_flags(self, level: Optimization) -> list[str]: ...

    @abstractmethod
    def debug_flags(self, level: Debug) -> list[str]: ...

    @abstractmethod
    def output_flags(self, output: Path, preprocess: bool) -> list[str]: ...


class BaseLinker(BaseTool):
    """Linker that also knows how to archive static libraries.

    Subclasses implement link_command() for applications and dynamic
    libraries, archive_command() for static libraries and input_args()
    for the rendering of each link input.
    """

    default_archiver: ClassVar[str] = "ar"
    search_prefix: ClassVar[str] = "-L"

    def __init__(
        self,
        executable: str | Path | None = None,
        archiver: str | Path | None = None,
    ) -> None:
        super().__init__(executable)
        self.archiver = str(archiver) if archiver is not None else self.default_archiver

    def link(self, step: LinkStep) -> Command:
        if step.kind == "static-library":
            return self.archive_command(step)
        return self.link_command(step)

    def search_flags(self, searches: Iterable[Path]) -> list[str]:
        return [f"{self.search_prefix}{self.path(s)}" for s in searches]

    def inputs(self, inputs: Iterable[LinkInput]) -> list[str]:
        args: list[str] = []
        for item in inputs:
            if isinstance(item, Path):
                args.append(self.path(item))
            elif isinstance(item, ExternalLibraryRef):
                args.extend(self.library_args(item))
            elif isinstance(item, LinkedEntity):
                args.extend(self.entity_args(item))
            else:
                raise ConfigurationError(f"unrecognized link input: {item!r}")
        return args

    def archive_command(self, step: LinkStep) -> Command:
        return Command(
            (self.archiver, "rcs", self.path(step.output))
            + tuple(self.path(o) for o in step.objects)
        )

    @abstractmethod
    def link_command(self, step: LinkStep) -> Command: ...

    @abstractmethod
    def library_args(self, lib: ExternalLibraryRef) -> list[str]: ...

    @abstractmethod
    def entity_args(self, entity: LinkedEntity) -> list[str]: ...
