# SPDX-License-Identifier: MIT
"""Tiny C compiler (tcc).

The embedded tcc is only used to preprocess the runtime's core header
into a blob the runtime can embed; it attaches to a build context
independently of the compiler/linker pair.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rtbuild.core.errors import ConfigurationError
from rtbuild.core.flags import Family
from rtbuild.toolchains.gcc import GccCompiler

if TYPE_CHECKING:
    from rtbuild.core.entity import Debug


class TccCompiler(GccCompiler):
    """tcc, with gcc's command layout and a single debug level."""

    tool_name = "tcc"
    family = Family.TCC
    default_executable = "tcc"

    def debug_flags(self, level: Debug) -> list[str]:
        if level is None or level is False:
            return []
        if level is True or isinstance(level, int):
            return ["-g"]
        raise ConfigurationError(f"unrecognized debug option: {level!r}")
