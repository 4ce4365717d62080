# SPDX-License-Identifier: MIT
"""GCC-style toolchain.

Provides:
- GCC C compiler (gcc)
- Clang, which accepts the same command line (clang)
- GNU linker driver (ld, run through gcc)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rtbuild.core.commands import Command
from rtbuild.core.entity import Application
from rtbuild.core.errors import ConfigurationError
from rtbuild.core.flags import Family
from rtbuild.toolchains.base import BaseCompiler, BaseLinker

if TYPE_CHECKING:
    from pathlib import Path

    from rtbuild.core.entity import Debug, ExternalLibraryRef, LinkedEntity, Optimization
    from rtbuild.core.plan import LinkStep


class GccCompiler(BaseCompiler):
    """GCC C compiler.

    Command layout:
        gcc -c [-fPIC] -I<dir>... -D<def>... -O<n> -g -g3 <cflags> -o <out> <src>
    """

    tool_name = "gcc"
    family = Family.GNU
    default_executable = "gcc"

    def mode_flags(self, preprocess: bool) -> list[str]:
        return ["-E"] if preprocess else ["-c"]

    def optimization_flags(self, level: Optimization) -> list[str]:
        if level is None:
            return []
        if level is True:
            return ["-O2"]
        if level is False:
            return ["-O0"]
        if isinstance(level, int):
            return [f"-O{level}"]
        if isinstance(level, str) and (level in ("s", "z") or level.isdigit()):
            return [f"-O{level}"]
        raise ConfigurationError(f"unrecognized optimization level: {level!r}")

    def debug_flags(self, level: Debug) -> list[str]:
        if level is None or level is False:
            return []
        if level is True:
            return ["-g", "-g3"]
        if isinstance(level, int):
            return [f"-g{level}"]
        raise ConfigurationError(f"unrecognized debug option: {level!r}")

    def output_flags(self, output: Path, preprocess: bool) -> list[str]:
        return ["-o", self.path(output)]


class ClangCompiler(GccCompiler):
    """Clang C compiler (gcc-compatible command line)."""

    tool_name = "clang"
    default_executable = "clang"


class GnuLinker(BaseLinker):
    """Linking through the gcc driver.

    Command layout:
        gcc [-shared] -o <out> -L<dir>... <ldflags> <inputs>

    Libraries referenced by name become ``-l<name>`` (preceded by
    ``-static`` for static references); libraries referenced by path,
    static libraries and dynamic libraries are passed as files.
    Applications contribute nothing to the command line.
    """

    tool_name = "ld"
    family = Family.GNU
    default_executable = "gcc"
    default_archiver = "ar"

    def link_command(self, step: LinkStep) -> Command:
        args: list[str] = [self.executable]
        if step.dynamic:
            args.append("-shared")
        args.extend(["-o", self.path(step.output)])
        args.extend(self.search_flags(step.searches))
        args.extend(self.flags(step.ldflags))
        args.extend(self.inputs(step.inputs))
        return Command(tuple(args))

    def library_args(self, lib: ExternalLibraryRef) -> list[str]:
        if lib.by_path:
            return [self.path(lib.output)]
        args = ["-static"] if lib.static else []
        args.append(f"-l{lib.output}")
        return args

    def entity_args(self, entity: LinkedEntity) -> list[str]:
        if isinstance(entity, Application):
            return []
        return [self.path(entity.output)]
