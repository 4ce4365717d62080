# SPDX-License-Identifier: MIT
"""Build context.

The BuildContext carries the target platform and the selected tools
through every flatten, execute and generate call, so that several
independent builds (or tests) can run in one process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rtbuild.toolchains.registry import create_toolset, validate_pair

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rtbuild.core.commands import StripTool
    from rtbuild.core.platform import TargetPlatform
    from rtbuild.toolchains.base import BaseCompiler, BaseLinker
    from rtbuild.toolchains.registry import ToolToken
    from rtbuild.toolchains.tcc import TccCompiler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildContext:
    """Platform and tools of one build.

    The compiler/linker pair is validated on construction, before any
    build step can run. Strip and tcc attach without a pairing check.

    Attributes:
        platform: Target platform.
        compiler: Active compiler.
        linker: Active linker.
        strip: Strip tool, or None to skip stripping.
        tcc: Embedded tcc used for preprocessing, if any.
    """

    platform: TargetPlatform
    compiler: BaseCompiler
    linker: BaseLinker
    strip: StripTool | None = None
    tcc: TccCompiler | None = None

    def __post_init__(self) -> None:
        validate_pair(self.compiler.name, self.linker.name)

    @classmethod
    def from_toolset(
        cls,
        platform: TargetPlatform,
        tokens: Iterable[ToolToken],
        tcc: TccCompiler | None = None,
    ) -> BuildContext:
        """Create a context from toolset tokens such as ['gcc', 'ld']."""
        toolset = create_toolset(tokens)
        logger.info(
            "Using %s/%s for %s",
            toolset.compiler.name,
            toolset.linker.name,
            platform.os_name,
        )
        return cls(
            platform=platform,
            compiler=toolset.compiler,
            linker=toolset.linker,
            strip=toolset.strip,
            tcc=tcc,
        )

    @property
    def windows(self) -> bool:
        return self.platform.is_windows
