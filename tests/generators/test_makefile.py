# SPDX-License-Identifier: MIT
"""Tests for rtbuild.generators.makefile."""

from __future__ import annotations

from pathlib import Path

import pytest

from rtbuild.core.commands import Command, CreateDir, Delete, Strip
from rtbuild.core.context import BuildContext
from rtbuild.core.entity import (
    ExternalLibraryRef,
    PhonyTarget,
    Variable,
    make_application,
    make_dynamic_library,
    make_object_file,
    make_object_library,
)
from rtbuild.core.errors import CyclicDependency, GenerateError
from rtbuild.core.plan import Plan
from rtbuild.core.platform import platform_for
from rtbuild.core.solution import Solution
from rtbuild.generators import Generator, MakefileGenerator, NMakeGenerator

LINUX = platform_for("linux")
WINDOWS = platform_for("windows")


def gcc_context() -> BuildContext:
    return BuildContext.from_toolset(LINUX, ["gcc", "ld", "strip"])


def msvc_context() -> BuildContext:
    return BuildContext.from_toolset(WINDOWS, ["cl", "link"])


def make_solution(platform=LINUX) -> Solution:
    core = make_object_library(
        "libr3-core",
        ["a.c", "b.c"],
        extra_defs=["REB_API"],
        base_dir="../src/core",
        objs_dir="objs/core",
        platform=platform,
    )
    app = make_application(
        "main",
        "r3",
        [core, ExternalLibraryRef(output="m")],
        platform=platform,
        post_build=(Strip(Path("r3")),),
    )
    ext = make_dynamic_library(
        "libr3-png",
        "libr3-png",
        [make_object_file("png.c", "../src/extensions", platform=platform), app],
        platform=platform,
    )
    return Solution(
        "r3",
        [
            Variable(name="REBOL_TOOL", value="./r3-make"),
            Variable(name="GIT_COMMIT", default="unknown"),
            PhonyTarget(name="top", depends=(app, ext)),
            PhonyTarget(name="folders", commands=(CreateDir(Path("objs/core")),)),
            PhonyTarget(
                name="prep",
                depends=("REBOL_TOOL",),
                commands=("$(REBOL_TOOL) -qs make-boot.r GIT_COMMIT=$(GIT_COMMIT)",),
            ),
            core,
            app,
            ext,
            PhonyTarget(name="clean", commands=(Delete(Path("objs"), directory=True),)),
        ],
    )


class TestMakefileGenerator:
    """Tests for the GNU make generator."""

    def test_is_generator(self):
        generator = MakefileGenerator(gcc_context())
        assert isinstance(generator, Generator)
        assert generator.name == "makefile"

    def test_variables(self):
        text = MakefileGenerator(gcc_context()).render(make_solution())
        assert "REBOL_TOOL=./r3-make\n" in text
        assert "GIT_COMMIT?=unknown\n" in text

    def test_first_rule_is_top(self):
        """Test that the first target is the default goal."""
        rules = MakefileGenerator(gcc_context()).rules(make_solution())
        assert rules[0].target == "top"
        assert rules[0].prerequisites == ("main", "libr3-png")

    def test_compile_rules(self):
        text = MakefileGenerator(gcc_context()).render(make_solution())
        assert "objs/core/a.o: ../src/core/a.c\n" in text
        assert (
            "\tgcc -c -DREB_API -o objs/core/a.o ../src/core/a.c\n" in text
        )

    def test_pic_for_dynamic_library(self):
        text = MakefileGenerator(gcc_context()).render(make_solution())
        assert "\tgcc -c -fPIC -o objs/png.o ../src/extensions/png.c\n" in text

    def test_link_rule_with_post_build(self):
        text = MakefileGenerator(gcc_context()).render(make_solution())
        assert "main: libr3-core r3\n" in text
        assert "r3: objs/core/a.o objs/core/b.o\n" in text
        assert "\tgcc -o r3 objs/core/a.o objs/core/b.o -lm\n\tstrip -S -x -X r3\n" in text

    def test_dynamic_library_depends_on_app(self):
        text = MakefileGenerator(gcc_context()).render(make_solution())
        assert "libr3-png: main libr3-png.so\n" in text
        assert "libr3-png.so: objs/png.o r3\n" in text
        assert "\tgcc -shared -o libr3-png.so objs/png.o\n" in text

    def test_object_library_rule(self):
        text = MakefileGenerator(gcc_context()).render(make_solution())
        assert "libr3-core: objs/core/a.o objs/core/b.o\n" in text

    def test_phony_commands(self):
        text = MakefileGenerator(gcc_context()).render(make_solution())
        assert "folders:\n\tmkdir -p objs/core\n" in text
        assert "prep: $(REBOL_TOOL)\n" in text
        assert "\t$(REBOL_TOOL) -qs make-boot.r GIT_COMMIT=$(GIT_COMMIT)\n" in text
        assert "clean:\n\trm -fr objs\n" in text

    def test_phony_line(self):
        text = MakefileGenerator(gcc_context()).render(make_solution())
        assert text.rstrip().endswith(
            ".PHONY: top folders prep libr3-core main libr3-png clean"
        )

    def test_command_dollar_escaped(self):
        solution = Solution(
            "s",
            [PhonyTarget(name="show", commands=(Command(("echo", "$HOME")),))],
        )
        text = MakefileGenerator(gcc_context()).render(solution)
        assert "\techo '$$HOME'\n" in text

    def test_shared_objects_emitted_once(self):
        shared = make_object_file("s.c", "src", platform=LINUX)
        one = make_application("one", "one", [shared], platform=LINUX)
        two = make_application("two", "two", [shared], platform=LINUX)
        rules = MakefileGenerator(gcc_context()).rules(Solution("s", [one, two]))
        assert [r.target for r in rules].count("objs/s.o") == 1

    def test_conflicting_settings_warn(self, caplog):
        a = make_object_file("s.c", "src", platform=LINUX)
        one = make_application("one", "one", [a], platform=LINUX, definitions=("ONE",))
        two = make_application("two", "two", [a], platform=LINUX, definitions=("TWO",))
        MakefileGenerator(gcc_context()).rules(Solution("s", [one, two]))
        assert "different settings" in caplog.text

    def test_output_named_target(self):
        """Test that a target named after its output gets a single file rule."""
        app = make_application(
            "r3", "r3", [make_object_file("m.c", platform=LINUX)], platform=LINUX
        )
        rules = MakefileGenerator(gcc_context()).rules(Solution("s", [app]))
        assert [r.target for r in rules] == ["objs/m.o", "r3"]
        assert rules[1].solution_target
        assert not rules[1].phony

    def test_external_library_target(self):
        rules = MakefileGenerator(gcc_context()).rules(
            Solution("s", [ExternalLibraryRef(output="ffi")])
        )
        assert rules[0].target == "ffi"
        assert rules[0].phony

    def test_cycle(self):
        solution = Solution(
            "s",
            [
                PhonyTarget(name="a", depends=("b",)),
                PhonyTarget(name="b", depends=("a",)),
            ],
        )
        with pytest.raises(CyclicDependency):
            MakefileGenerator(gcc_context()).render(solution)

    def test_link_rules_need_a_link_step(self):
        app = make_application("main", "r3", [], platform=platform_for("linux"))
        generator = MakefileGenerator(gcc_context())
        with pytest.raises(GenerateError, match="main: nothing to link"):
            generator._link_rules(app, Plan(target="main"), "main", ())

    def test_generate_is_deterministic(self, tmp_path):
        generator = MakefileGenerator(gcc_context())
        path = tmp_path / "build" / "makefile"
        assert generator.generate(path, make_solution()) == [path]
        first = path.read_bytes()
        mtime = path.stat().st_mtime_ns
        generator.generate(path, make_solution())
        assert path.read_bytes() == first
        assert path.stat().st_mtime_ns == mtime


class TestNMakeGenerator:
    """Tests for the NMake generator."""

    def test_name(self):
        assert NMakeGenerator(msvc_context()).name == "nmake"

    def test_defaults_without_question_mark(self):
        text = NMakeGenerator(msvc_context()).render(make_solution(WINDOWS))
        assert "GIT_COMMIT=unknown\n" in text
        assert "?=" not in text

    def test_no_phony_line(self):
        text = NMakeGenerator(msvc_context()).render(make_solution(WINDOWS))
        assert ".PHONY" not in text

    def test_windows_syntax(self):
        text = NMakeGenerator(msvc_context()).render(make_solution(WINDOWS))
        assert "objs\\core\\a.obj: ..\\src\\core\\a.c\n" in text
        assert "\tcl /nologo /c /DREB_API /Foobjs\\core\\a.obj ..\\src\\core\\a.c\n" in text
        assert "folders:\n\tmkdir objs\\core\n" in text
        assert "clean:\n\trmdir /S /Q objs\n" in text

    def test_strip_dropped(self):
        text = NMakeGenerator(msvc_context()).render(make_solution(WINDOWS))
        assert "strip" not in text

    def test_same_targets_as_makefile(self):
        """Test that both backends agree on targets and dependency sets."""
        make = MakefileGenerator(gcc_context())
        nmake = NMakeGenerator(msvc_context())
        solution = make_solution()
        assert make.target_names(solution) == nmake.target_names(solution)
        assert make.dependency_map(solution) == nmake.dependency_map(solution)
