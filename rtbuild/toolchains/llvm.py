# SPDX-License-Identifier: MIT
"""LLVM bitcode linker (llvm-link).

llvm-link combines bitcode objects and does not search for libraries, so
library search paths, external libraries and linked dependencies never
reach its command line. It has its own flag family so that gnu-tagged
linker flags (e.g. -Wl,--as-needed) are dropped as well.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rtbuild.core.commands import Command
from rtbuild.core.flags import Family
from rtbuild.toolchains.base import BaseLinker

if TYPE_CHECKING:
    from rtbuild.core.entity import ExternalLibraryRef, LinkedEntity
    from rtbuild.core.plan import LinkStep


class LlvmLinker(BaseLinker):
    """llvm-link.

    Command layout:
        llvm-link -o <out> <ldflags> <objects>
    """

    tool_name = "llvm-link"
    family = Family.LLVM
    default_executable = "llvm-link"
    default_archiver = "llvm-ar"

    def link_command(self, step: LinkStep) -> Command:
        args: list[str] = [self.executable, "-o", self.path(step.output)]
        args.extend(self.flags(step.ldflags))
        args.extend(self.inputs(step.inputs))
        return Command(tuple(args))

    def library_args(self, lib: ExternalLibraryRef) -> list[str]:
        return []

    def entity_args(self, entity: LinkedEntity) -> list[str]:
        return []
