# SPDX-License-Identifier: MIT
"""Build entity model.

Entities describe build artifacts: object files, object libraries (named
groups of objects that are not linked yet), static and dynamic libraries,
applications and references to pre-built libraries. Solutions also hold
phony targets and build-file variables.

Entities are immutable. Dependencies are either entities or name handles
(plain strings) that a Solution resolves; the Dependency Flattener derives
a separate Plan, so entities are never modified after construction.

Flag inheritance is not the entity's business: each entity carries only
its own settings and the flattener merges them with the immediate
parent's.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import TYPE_CHECKING, Union

from rtbuild.core.commands import Command, PostBuildCommand
from rtbuild.core.errors import ConfigurationError
from rtbuild.core.flags import ToolchainFlag, expand_source_flags, parse_flags
from rtbuild.core.platform import get_target_platform

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from rtbuild.core.platform import TargetPlatform

logger = logging.getLogger(__name__)

# False/0 = off, True = default level, 1-4 or 's'/'z' = that level.
Optimization = Union[bool, int, str, None]
# False = off, True = full debug info, int = that debug level.
Debug = Union[bool, int, None]


@dataclass(frozen=True, kw_only=True)
class BuildEntity:
    """Settings common to every compilable entity.

    Attributes:
        name: Entity name, unique within a Solution for top-level targets.
        includes: Include directories.
        definitions: Preprocessor definitions ('NDEBUG', 'X=1').
        cflags: Compiler flags, plain or tagged.
        optimization: Optimization level; None inherits from the parent.
        debug: Debug info level; None inherits from the parent.
    """

    name: str = ""
    includes: tuple[Path, ...] = ()
    definitions: tuple[ToolchainFlag, ...] = ()
    cflags: tuple[ToolchainFlag, ...] = ()
    optimization: Optimization = None
    debug: Debug = None

    def __post_init__(self) -> None:
        # Accept lists from callers but store tuples so entities stay hashable.
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, list):
                object.__setattr__(self, f.name, tuple(value))
        object.__setattr__(self, "includes", tuple(Path(p) for p in self.includes))
        object.__setattr__(self, "definitions", parse_flags(self.definitions))
        object.__setattr__(self, "cflags", parse_flags(self.cflags))


@dataclass(frozen=True, kw_only=True)
class ObjectFile(BuildEntity):
    """One source file compiled to one object file."""

    source: Path
    output: Path

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "source", Path(self.source))
        object.__setattr__(self, "output", Path(self.output))
        if not self.name:
            object.__setattr__(self, "name", self.output.as_posix())


@dataclass(frozen=True, kw_only=True)
class ObjectLibrary(BuildEntity):
    """A named group of object files that is not linked on its own.

    The same object library can feed the builtin link of the application
    and, separately, a dynamic library.
    """

    depends: tuple[DependencyRef, ...] = ()


@dataclass(frozen=True, kw_only=True)
class ExternalLibraryRef:
    """A pre-built library.

    Attributes:
        output: Library name ('pthread') or, with by_path, the library file.
        static: Prefer static linking (gnu '-static').
        by_path: Link the file given in output instead of searching by name.
    """

    output: str
    static: bool = False
    by_path: bool = False

    @property
    def name(self) -> str:
        return self.output


@dataclass(frozen=True, kw_only=True)
class LinkedEntity(BuildEntity):
    """An entity produced by the linker (or the archiver).

    Attributes:
        output: The produced file, platform suffix included.
        depends: Objects, object libraries, other linked entities, external
            libraries or name handles.
        ldflags: Linker flags, plain or tagged.
        libraries: External libraries linked after all objects.
        searches: Library search directories.
        post_build: Commands run after a successful link.
        implib: Import library for msc links against this entity; defaults
            to the output with a '.lib' suffix.
    """

    output: Path
    depends: tuple[DependencyRef, ...] = ()
    ldflags: tuple[ToolchainFlag, ...] = ()
    libraries: tuple[ExternalLibraryRef, ...] = ()
    searches: tuple[Path, ...] = ()
    post_build: tuple[PostBuildCommand, ...] = ()
    implib: Path | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "output", Path(self.output))
        object.__setattr__(self, "ldflags", parse_flags(self.ldflags))
        object.__setattr__(self, "searches", tuple(Path(p) for p in self.searches))
        object.__setattr__(
            self, "libraries", tuple(_to_library(lib) for lib in self.libraries)
        )
        if self.implib is not None:
            object.__setattr__(self, "implib", Path(self.implib))
        if not self.name:
            object.__setattr__(self, "name", self.output.as_posix())

    @property
    def basename(self) -> Path:
        """The output path without its suffix."""
        return self.output.with_suffix("")

    @property
    def import_library(self) -> Path:
        """The library msc links against to use this entity."""
        if self.implib is not None:
            return self.implib
        return self.basename.with_suffix(".lib")


@dataclass(frozen=True, kw_only=True)
class StaticLibrary(LinkedEntity):
    """An archive of object files."""


@dataclass(frozen=True, kw_only=True)
class DynamicLibrary(LinkedEntity):
    """A shared library; its objects are compiled position independent."""


@dataclass(frozen=True, kw_only=True)
class Application(LinkedEntity):
    """An executable."""


PhonyCommand = Union[str, Command, PostBuildCommand]


@dataclass(frozen=True, kw_only=True)
class PhonyTarget:
    """A target without an output file ('clean', 'check', 'folders').

    Attributes:
        name: Target name.
        depends: Targets that must be built first.
        commands: Shell lines (may reference variables as $(NAME)),
            commands or post-build commands, run in order.
    """

    name: str
    depends: tuple[DependencyRef, ...] = ()
    commands: tuple[PhonyCommand, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "depends", tuple(self.depends))
        object.__setattr__(self, "commands", tuple(self.commands))


@dataclass(frozen=True, kw_only=True)
class Variable:
    """A build-file variable.

    A value is always assigned; a default only applies when the
    environment does not define the variable already.
    """

    name: str
    value: str | None = None
    default: str | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.default is None):
            raise ConfigurationError(
                f"variable {self.name} needs exactly one of value or default"
            )

    @property
    def effective(self) -> str:
        return self.value if self.value is not None else str(self.default)


Compilable = Union[ObjectFile, ObjectLibrary]
Entity = Union[
    ObjectFile,
    ObjectLibrary,
    StaticLibrary,
    DynamicLibrary,
    Application,
    ExternalLibraryRef,
    PhonyTarget,
    Variable,
]
# A dependency is an entity or the name of a Solution target.
DependencyRef = Union[Entity, str]


def _to_library(lib: ExternalLibraryRef | str) -> ExternalLibraryRef:
    if isinstance(lib, ExternalLibraryRef):
        return lib
    return ExternalLibraryRef(output=lib)


def entity_output(entity: Entity) -> Path | None:
    """The file an entity produces, if any."""
    if isinstance(entity, (ObjectFile, LinkedEntity)):
        return entity.output
    return None


def entity_kind(entity: Entity) -> str:
    """Short kind name used in logs and generated files."""
    kinds: dict[type, str] = {
        ObjectFile: "object",
        ObjectLibrary: "object-library",
        StaticLibrary: "static-library",
        DynamicLibrary: "dynamic-library",
        Application: "application",
        ExternalLibraryRef: "external-library",
        PhonyTarget: "phony",
        Variable: "variable",
    }
    return kinds[type(entity)]


# Construction helpers


def _relative_source(source: Path, base_dir: Path) -> Path:
    if source.is_absolute():
        try:
            return source.relative_to(base_dir)
        except ValueError:
            raise ConfigurationError(
                f"source {source} is not inside {base_dir}"
            ) from None
    return source


def make_object_file(
    source: str | Path,
    base_dir: str | Path = ".",
    *,
    objs_dir: str | Path = "objs",
    platform: TargetPlatform | None = None,
    includes: Iterable[str | Path] = (),
    definitions: Iterable[ToolchainFlag] = (),
    cflags: Iterable[ToolchainFlag] = (),
    optimization: Optimization = None,
    debug: Debug = None,
) -> ObjectFile:
    """Create an object file entity for one source.

    The output is ``objs_dir/<source relative to base_dir>`` with the
    platform's object suffix, so the same source maps to distinct outputs
    on different platforms and distinct sources never collide.

    Args:
        source: Source path, relative to base_dir (or absolute under it).
        base_dir: Directory the source path is relative to.
        objs_dir: Root of the object tree.
        platform: Target platform; defaults to the active one.
        includes: Include directories for this file only.
        definitions: Definitions for this file only.
        cflags: Compiler flags for this file only. Warning keywords such as
            'no-uninitialized' are expanded to tagged flags.
        optimization: Optimization override.
        debug: Debug override.

    Returns:
        The new ObjectFile.
    """
    if platform is None:
        platform = get_target_platform()
    base = Path(base_dir)
    relative = _relative_source(Path(source), base)
    output = Path(objs_dir) / relative.with_suffix(platform.obj_suffix)
    return ObjectFile(
        source=base / relative,
        output=output,
        includes=tuple(Path(p) for p in includes),
        definitions=parse_flags(definitions),
        cflags=expand_source_flags(cflags),
        optimization=optimization,
        debug=debug,
    )


SourceSpec = Union[
    str,
    Path,
    "tuple[str | Path, Sequence[ToolchainFlag]]",
    ObjectFile,
    ObjectLibrary,
]


def make_object_library(
    name: str,
    sources: Iterable[SourceSpec],
    extra_flags: Iterable[ToolchainFlag] = (),
    extra_defs: Iterable[ToolchainFlag] = (),
    *,
    base_dir: str | Path = ".",
    objs_dir: str | Path = "objs",
    platform: TargetPlatform | None = None,
    includes: Iterable[str | Path] = (),
    optimization: Optimization = None,
    debug: Debug = None,
) -> ObjectLibrary:
    """Create an object library from a mixed list of sources.

    Each item is a source path, a ``(path, flags)`` pair carrying
    per-file flags or warning keywords, or an already-built ObjectFile or
    ObjectLibrary which is kept as is.

    Args:
        name: Library name.
        sources: The sources, in link order.
        extra_flags: Compiler flags for every object of the library.
        extra_defs: Definitions for every object of the library.
        base_dir: Directory source paths are relative to.
        objs_dir: Root of the object tree.
        platform: Target platform; defaults to the active one.
        includes: Include directories for every object of the library.
        optimization: Optimization for every object of the library.
        debug: Debug level for every object of the library.

    Returns:
        The new ObjectLibrary.

    Raises:
        ConfigurationError: If an item has an unsupported type.
    """
    if platform is None:
        platform = get_target_platform()
    depends: list[DependencyRef] = []
    for item in sources:
        if isinstance(item, (ObjectFile, ObjectLibrary)):
            depends.append(item)
        elif isinstance(item, (str, Path)):
            depends.append(
                make_object_file(item, base_dir, objs_dir=objs_dir, platform=platform)
            )
        elif isinstance(item, tuple) and len(item) == 2:
            path, flags = item
            depends.append(
                make_object_file(
                    path, base_dir, objs_dir=objs_dir, platform=platform, cflags=flags
                )
            )
        else:
            raise ConfigurationError(f"{name}: unsupported source {item!r}")
    logger.debug("Object library %s: %d entries", name, len(depends))
    return ObjectLibrary(
        name=name,
        depends=tuple(depends),
        includes=tuple(Path(p) for p in includes),
        definitions=parse_flags(extra_defs),
        cflags=parse_flags(extra_flags),
        optimization=optimization,
        debug=debug,
    )


def with_suffix(output: str | Path, suffix: str) -> Path:
    """Append a platform suffix unless the output already carries it."""
    path = Path(output)
    if not suffix or path.name.endswith(suffix):
        return path
    return path.with_name(path.name + suffix)


def make_application(
    name: str,
    output: str | Path,
    depends: Iterable[DependencyRef] = (),
    *,
    platform: TargetPlatform | None = None,
    **settings: object,
) -> Application:
    """Create an application; the platform's executable suffix is appended."""
    if platform is None:
        platform = get_target_platform()
    return Application(
        name=name,
        output=with_suffix(output, platform.exe_suffix),
        depends=tuple(depends),
        **settings,  # type: ignore[arg-type]
    )


def make_dynamic_library(
    name: str,
    output: str | Path,
    depends: Iterable[DependencyRef] = (),
    *,
    platform: TargetPlatform | None = None,
    **settings: object,
) -> DynamicLibrary:
    """Create a dynamic library; the platform's dll suffix is appended."""
    if platform is None:
        platform = get_target_platform()
    return DynamicLibrary(
        name=name,
        output=with_suffix(output, platform.dll_suffix),
        depends=tuple(depends),
        **settings,  # type: ignore[arg-type]
    )


def make_static_library(
    name: str,
    output: str | Path,
    depends: Iterable[DependencyRef] = (),
    *,
    platform: TargetPlatform | None = None,
    **settings: object,
) -> StaticLibrary:
    """Create a static library; the platform's archive suffix is appended."""
    if platform is None:
        platform = get_target_platform()
    return StaticLibrary(
        name=name,
        output=with_suffix(output, platform.static_lib_suffix),
        depends=tuple(depends),
        **settings,  # type: ignore[arg-type]
    )
