# SPDX-License-Identifier: MIT
"""
rtbuild: the build-graph engine of the runtime.

rtbuild turns a build configuration into a solution of compile, link and
phony targets, then either runs it directly or writes Makefile, NMake or
Visual Studio build files for it.
"""

from __future__ import annotations

__version__ = "0.1.0"

# Re-export commonly used classes for convenient imports
from rtbuild.configure.assemble import assemble_solution  # noqa: E402
from rtbuild.configure.config import BuildConfig  # noqa: E402
from rtbuild.core.context import BuildContext  # noqa: E402
from rtbuild.core.errors import RtbuildError  # noqa: E402
from rtbuild.core.platform import lookup, platform_for  # noqa: E402
from rtbuild.core.solution import Solution  # noqa: E402
from rtbuild.executor import Executor  # noqa: E402
from rtbuild.generators import (  # noqa: E402
    MakefileGenerator,
    NMakeGenerator,
    VisualStudioGenerator,
)

# Public API exports
__all__ = [
    # Version
    "__version__",
    # Configuration
    "BuildConfig",
    "assemble_solution",
    # Core classes
    "BuildContext",
    "RtbuildError",
    "Solution",
    "lookup",
    "platform_for",
    # Backends
    "Executor",
    "MakefileGenerator",
    "NMakeGenerator",
    "VisualStudioGenerator",
]
