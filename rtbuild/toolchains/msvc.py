# SPDX-License-Identifier: MIT
"""MSVC toolchain.

Provides:
- MSVC C compiler (cl)
- MSVC linker (link), which also archives static libraries with lib.exe

Paths are written with backslashes. Libraries referenced by name get a
``.lib`` suffix; applications and dynamic libraries are linked against
through their import libraries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rtbuild.core.commands import Command
from rtbuild.core.entity import StaticLibrary
from rtbuild.core.errors import ConfigurationError
from rtbuild.core.flags import Family
from rtbuild.toolchains.base import BaseCompiler, BaseLinker

if TYPE_CHECKING:
    from pathlib import Path

    from rtbuild.core.entity import Debug, ExternalLibraryRef, LinkedEntity, Optimization
    from rtbuild.core.plan import LinkStep


# /O3 and /O4 do not exist for cl; they map to full optimization.
_MSVC_OPTIMIZATION: dict[object, str] = {
    1: "/O1",
    2: "/O2",
    3: "/Ox",
    4: "/Ox",
    "1": "/O1",
    "2": "/O2",
    "3": "/Ox",
    "4": "/Ox",
    "s": "/Os",
    "z": "/Os",
}


class MsvcCompiler(BaseCompiler):
    """MSVC C compiler.

    Command layout:
        cl /nologo /c /I<dir>... /D<def>... /O<n> /Od /Zi <cflags> /Fo<out> <src>
    """

    tool_name = "cl"
    family = Family.MSC
    default_executable = "cl"
    include_prefix = "/I"
    define_prefix = "/D"

    def mode_flags(self, preprocess: bool) -> list[str]:
        return ["/nologo", "/P" if preprocess else "/c"]

    def pic_flags(self) -> list[str]:
        return []

    def optimization_flags(self, level: Optimization) -> list[str]:
        if level is None or level is False or level == 0:
            return []
        if level is True:
            return ["/O2"]
        flag = _MSVC_OPTIMIZATION.get(level)
        if flag is None:
            raise ConfigurationError(f"unrecognized optimization level: {level!r}")
        return [flag]

    def debug_flags(self, level: Debug) -> list[str]:
        if level is None or level is False:
            return []
        # cl has no debug levels; any level turns debugging on
        if level is True or isinstance(level, int):
            return ["/Od", "/Zi"]
        raise ConfigurationError(f"unrecognized debug option: {level!r}")

    def output_flags(self, output: Path, preprocess: bool) -> list[str]:
        prefix = "/Fi" if preprocess else "/Fo"
        return [f"{prefix}{self.path(output)}"]


class MsvcLinker(BaseLinker):
    """MSVC linker.

    Command layout:
        link /NOLOGO [/DLL] /OUT:<out> /LIBPATH:<dir>... <ldflags> <inputs>
    """

    tool_name = "link"
    family = Family.MSC
    default_executable = "link"
    default_archiver = "lib"
    search_prefix = "/LIBPATH:"

    def link_command(self, step: LinkStep) -> Command:
        args: list[str] = [self.executable, "/NOLOGO"]
        if step.dynamic:
            args.append("/DLL")
        args.append(f"/OUT:{self.path(step.output)}")
        args.extend(self.search_flags(step.searches))
        args.extend(self.flags(step.ldflags))
        args.extend(self.inputs(step.inputs))
        return Command(tuple(args))

    def archive_command(self, step: LinkStep) -> Command:
        return Command(
            (self.archiver, "/NOLOGO", f"/OUT:{self.path(step.output)}")
            + tuple(self.path(o) for o in step.objects)
        )

    def library_args(self, lib: ExternalLibraryRef) -> list[str]:
        if lib.by_path:
            return [self.path(lib.output)]
        # static is meaningless for link; import libraries and archives
        # are both named <lib>.lib
        name = lib.output
        if not name.endswith(".lib"):
            name += ".lib"
        return [name]

    def entity_args(self, entity: LinkedEntity) -> list[str]:
        if isinstance(entity, StaticLibrary):
            return [self.path(entity.output)]
        return [self.path(entity.import_library)]
