# SPDX-License-Identifier: MIT
"""Toolchain registry: tool lookup, pairing rules and toolset parsing.

A toolset is written as an ordered list of tool tokens, each optionally
carrying an executable override::

    ["gcc", "ld", "strip"]
    ["clang=/opt/llvm/bin/clang", "llvm-link", ["strip", "/usr/bin/strip"]]

Exactly one compiler and one linker must be chosen and they must be
compatible: gcc with ld, clang with ld or llvm-link, cl with link.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from rtbuild.core.commands import StripTool
from rtbuild.core.errors import ConfigurationError, IncompatibleToolchain
from rtbuild.toolchains.gcc import ClangCompiler, GccCompiler, GnuLinker
from rtbuild.toolchains.llvm import LlvmLinker
from rtbuild.toolchains.msvc import MsvcCompiler, MsvcLinker
from rtbuild.toolchains.tcc import TccCompiler

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from rtbuild.toolchains.base import BaseCompiler, BaseLinker

logger = logging.getLogger(__name__)

COMPILERS: dict[str, type[BaseCompiler]] = {
    "gcc": GccCompiler,
    "clang": ClangCompiler,
    "cl": MsvcCompiler,
}

LINKERS: dict[str, type[BaseLinker]] = {
    "ld": GnuLinker,
    "llvm-link": LlvmLinker,
    "link": MsvcLinker,
}

COMPATIBLE_LINKERS: dict[str, frozenset[str]] = {
    "gcc": frozenset({"ld"}),
    "clang": frozenset({"ld", "llvm-link"}),
    "cl": frozenset({"link"}),
}


def validate_pair(compiler: str, linker: str) -> None:
    """Check that a compiler and a linker can be used together.

    Raises:
        IncompatibleToolchain: If the pair is not allowed.
    """
    if linker not in COMPATIBLE_LINKERS.get(compiler, frozenset()):
        raise IncompatibleToolchain(compiler, linker)


def create_compiler(name: str, executable: str | None = None) -> BaseCompiler:
    """Create a compiler by name ('gcc', 'clang', 'cl')."""
    try:
        cls = COMPILERS[name]
    except KeyError:
        raise ConfigurationError(f"unknown compiler: {name}") from None
    return cls(executable)


def create_linker(name: str, executable: str | None = None) -> BaseLinker:
    """Create a linker by name ('ld', 'llvm-link', 'link')."""
    try:
        cls = LINKERS[name]
    except KeyError:
        raise ConfigurationError(f"unknown linker: {name}") from None
    return cls(executable)


def create_tcc(executable: str | None = None) -> TccCompiler:
    return TccCompiler(executable)


@dataclass
class Toolset:
    """The tools selected for a build."""

    compiler: BaseCompiler
    linker: BaseLinker
    strip: StripTool | None = None


ToolToken = Union[str, "Sequence[str | None]"]


def parse_tool_token(token: ToolToken) -> tuple[str, str | None]:
    """Split a toolset token into (tool name, executable override).

    Accepts 'gcc', 'gcc=/usr/bin/gcc-12' and ('gcc', '/usr/bin/gcc-12').
    """
    if isinstance(token, str):
        name, sep, exe = token.partition("=")
        return name.strip(), (exe.strip() or None) if sep else None
    items = list(token)
    if not items or len(items) > 2 or not isinstance(items[0], str):
        raise ConfigurationError(f"malformed toolset entry: {token!r}")
    exe = items[1] if len(items) == 2 else None
    return items[0], exe


def create_toolset(tokens: Iterable[ToolToken]) -> Toolset:
    """Build a Toolset from ordered toolset tokens.

    Raises:
        ConfigurationError: On unknown tokens, a repeated compiler or
            linker, or a missing compiler or linker.
        IncompatibleToolchain: If the compiler and linker do not pair.
    """
    compiler: BaseCompiler | None = None
    linker: BaseLinker | None = None
    strip: StripTool | None = None
    for token in tokens:
        name, exe = parse_tool_token(token)
        if name in COMPILERS:
            if compiler is not None:
                raise ConfigurationError(
                    f"compiler set twice: {compiler.name} and {name}"
                )
            compiler = create_compiler(name, exe)
        elif name in LINKERS:
            if linker is not None:
                raise ConfigurationError(f"linker set twice: {linker.name} and {name}")
            linker = create_linker(name, exe)
        elif name == "strip":
            strip = StripTool(executable=exe) if exe else StripTool()
        else:
            raise ConfigurationError(f"unrecognized toolset entry: {name}")
        logger.debug("Toolset: %s%s", name, f" ({exe})" if exe else "")
    if compiler is None:
        raise ConfigurationError("Compiler is not set")
    if linker is None:
        raise ConfigurationError("Linker is not set")
    validate_pair(compiler.name, linker.name)
    return Toolset(compiler=compiler, linker=linker, strip=strip)
