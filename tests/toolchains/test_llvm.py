# SPDX-License-Identifier: MIT
"""Tests for rtbuild.toolchains.llvm."""

from pathlib import Path

from rtbuild.core.entity import Application, ExternalLibraryRef
from rtbuild.core.flags import tag
from rtbuild.core.plan import LinkStep
from rtbuild.toolchains.llvm import LlvmLinker


class TestLlvmLinker:
    def test_creation(self):
        linker = LlvmLinker()
        assert linker.name == "llvm-link"
        assert linker.executable == "llvm-link"
        assert linker.archiver == "llvm-ar"

    def test_objects_only(self):
        """Test that libraries, searches and gnu flags are dropped."""
        link = LinkStep(
            target="main",
            kind="application",
            output=Path("r3.bc"),
            inputs=(
                Path("objs/a.o"),
                ExternalLibraryRef(output="m"),
                Application(name="other", output="other"),
                Path("objs/b.o"),
            ),
            searches=(Path("/usr/lib"),),
            ldflags=(tag("gnu", "-Wl,--as-needed"), tag("llvm", "-v")),
        )
        assert LlvmLinker().link(link).argv == (
            "llvm-link",
            "-o",
            "r3.bc",
            "-v",
            "objs/a.o",
            "objs/b.o",
        )

    def test_archive(self):
        link = LinkStep(
            target="z",
            kind="static-library",
            output=Path("libz.a"),
            inputs=(Path("objs/a.o"),),
        )
        assert LlvmLinker().link(link).argv == ("llvm-ar", "rcs", "libz.a", "objs/a.o")
