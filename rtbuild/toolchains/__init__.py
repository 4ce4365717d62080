# SPDX-License-Identifier: MIT
"""Toolchain definitions (GCC, Clang, LLVM, MSVC, tcc)."""

from rtbuild.toolchains.base import BaseCompiler, BaseLinker, Compiler, Linker
from rtbuild.toolchains.gcc import ClangCompiler, GccCompiler, GnuLinker
from rtbuild.toolchains.llvm import LlvmLinker
from rtbuild.toolchains.msvc import MsvcCompiler, MsvcLinker
from rtbuild.toolchains.registry import (
    Toolset,
    create_compiler,
    create_linker,
    create_toolset,
    validate_pair,
)
from rtbuild.toolchains.tcc import TccCompiler

__all__ = [
    "BaseCompiler",
    "BaseLinker",
    "Compiler",
    "Linker",
    # GNU
    "ClangCompiler",
    "GccCompiler",
    "GnuLinker",
    # LLVM
    "LlvmLinker",
    # MSVC
    "MsvcCompiler",
    "MsvcLinker",
    # tcc
    "TccCompiler",
    # Registry
    "Toolset",
    "create_compiler",
    "create_linker",
    "create_toolset",
    "validate_pair",
]
