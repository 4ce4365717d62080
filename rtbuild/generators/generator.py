# SPDX-License-Identifier: MIT
"""Build file backends for a Solution.

Generators take a Solution and a BuildContext and produce native build
files (GNU Makefile, NMake makefile, Visual Studio solution). Output is
deterministic: generating the same solution twice produces identical
bytes, and write_if_changed() leaves identical files untouched.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from rtbuild.core.context import BuildContext
    from rtbuild.core.solution import Solution

logger = logging.getLogger(__name__)


@runtime_checkable
class Generator(Protocol):
    """Protocol for build file generators."""

    @property
    def name(self) -> str:
        """Generator name (e.g., 'makefile', 'nmake', 'vs2017')."""
        ...

    def generate(self, path: Path, solution: Solution) -> list[Path]:
        """Generate build files for a solution.

        Args:
            path: Output file (makefiles) or directory (Visual Studio).
            solution: The solution to generate for.

        Returns:
            The files that were written or found up to date.
        """
        ...


class BaseGenerator:
    """Holds the name and the BuildContext every backend renders with."""

    def __init__(self, name: str, context: BuildContext) -> None:
        """Initialize a generator.

        Args:
            name: Generator name.
            context: Platform and tools the build files target.
        """
        self._name = name
        self.context = context

    @property
    def name(self) -> str:
        return self._name

    def generate(self, path: Path, solution: Solution) -> list[Path]:
        raise NotImplementedError(f"{type(self).__name__} does not write build files")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.context.platform.os_name})"


def write_if_changed(path: Path, content: str) -> bool:
    """Write a text file unless it already has exactly this content.

    Line endings in content are written as given.

    Returns:
        True if the file was written.
    """
    data = content.encode("utf-8")
    if path.is_file() and path.read_bytes() == data:
        logger.debug("%s is up to date", path)
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    logger.info("Wrote %s", path)
    return True
