# SPDX-License-Identifier: MIT
"""Build file generators for rtbuild."""

from rtbuild.generators.generator import BaseGenerator, Generator, write_if_changed
from rtbuild.generators.makefile import MakefileGenerator, NMakeGenerator, Rule
from rtbuild.generators.visual_studio import (
    VisualStudio2015Generator,
    VisualStudioGenerator,
)

__all__ = [
    "BaseGenerator",
    "Generator",
    "MakefileGenerator",
    "NMakeGenerator",
    "Rule",
    "VisualStudio2015Generator",
    "VisualStudioGenerator",
    "write_if_changed",
]
