# SPDX-License-Identifier: MIT
"""Tests for rtbuild.core.entity."""

from pathlib import Path

import pytest

from rtbuild.core.entity import (
    Application,
    DynamicLibrary,
    ExternalLibraryRef,
    ObjectFile,
    ObjectLibrary,
    PhonyTarget,
    Variable,
    entity_kind,
    entity_output,
    make_application,
    make_dynamic_library,
    make_object_file,
    make_object_library,
    make_static_library,
    with_suffix,
)
from rtbuild.core.errors import ConfigurationError
from rtbuild.core.flags import Family, TaggedFlag
from rtbuild.core.platform import platform_for, set_target_platform

LINUX = platform_for("linux")
WINDOWS = platform_for("windows")


class TestObjectFile:
    """Tests for object file entities."""

    def test_output_follows_platform(self):
        """Test that the same source maps to per-platform outputs."""
        linux = make_object_file("core/a-lib.c", "../src", platform=LINUX)
        windows = make_object_file("core/a-lib.c", "../src", platform=WINDOWS)
        assert linux.output == Path("objs/core/a-lib.o")
        assert windows.output == Path("objs/core/a-lib.obj")
        assert linux.source == Path("../src/core/a-lib.c")

    def test_deterministic_output(self):
        a = make_object_file("b.c", "src", objs_dir="out", platform=LINUX)
        b = make_object_file("b.c", "src", objs_dir="out", platform=LINUX)
        assert a == b
        assert a.output == Path("out/b.o")

    def test_absolute_source_under_base(self, tmp_path):
        obj = make_object_file(tmp_path / "x" / "y.c", tmp_path, platform=LINUX)
        assert obj.output == Path("objs/x/y.o")

    def test_absolute_source_outside_base(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not inside"):
            make_object_file("/elsewhere/y.c", tmp_path, platform=LINUX)

    def test_name_defaults_to_output(self):
        obj = make_object_file("m.c", platform=LINUX)
        assert obj.name == "objs/m.o"

    def test_uses_active_platform(self):
        set_target_platform("windows")
        assert make_object_file("m.c").output == Path("objs/m.obj")

    def test_warning_keywords_expand(self):
        obj = make_object_file("m.c", platform=LINUX, cflags=["no-unused-parameter"])
        assert obj.cflags == (TaggedFlag(Family.GNU, "-Wno-unused-parameter"),)

    def test_lists_become_tuples(self):
        """Test that entities stay hashable when given lists."""
        obj = ObjectFile(
            source="a.c", output="a.o", includes=["inc"], definitions=["X=1"]
        )
        assert obj.includes == (Path("inc"),)
        assert obj.definitions == ("X=1",)
        hash(obj)

    def test_tagged_definitions_parsed(self):
        obj = ObjectFile(source="a.c", output="a.o", definitions=["<msc:WIN32>"])
        assert obj.definitions == (TaggedFlag(Family.MSC, "WIN32"),)


class TestObjectLibrary:
    """Tests for make_object_library."""

    def test_mixed_sources(self):
        """Test paths, (path, flags) pairs and prebuilt objects."""
        prebuilt = make_object_file("pre.c", "src", platform=LINUX)
        lib = make_object_library(
            "core",
            ["a.c", ("b.c", ["-O0"]), prebuilt],
            ["-Wall"],
            ["REB_API"],
            base_dir="src",
            platform=LINUX,
        )
        a, b, c = lib.depends
        assert a.output == Path("objs/a.o")
        assert b.cflags == ("-O0",)
        assert c is prebuilt
        assert lib.cflags == ("-Wall",)
        assert lib.definitions == ("REB_API",)

    def test_unsupported_item(self):
        with pytest.raises(ConfigurationError, match="unsupported source"):
            make_object_library("bad", [42], platform=LINUX)


class TestLinkedEntities:
    """Tests for applications and libraries."""

    def test_application_suffix(self):
        app = make_application("main", "r3", platform=WINDOWS)
        assert isinstance(app, Application)
        assert app.output == Path("r3.exe")

    def test_suffix_not_doubled(self):
        app = make_application("main", "r3.exe", platform=WINDOWS)
        assert app.output == Path("r3.exe")

    def test_dynamic_library(self):
        lib = make_dynamic_library("png", "libr3-png", platform=platform_for("osx"))
        assert isinstance(lib, DynamicLibrary)
        assert lib.output == Path("libr3-png.dylib")

    def test_static_library(self):
        lib = make_static_library("z", "z", platform=WINDOWS)
        assert lib.output == Path("z.lib")

    def test_import_library(self):
        lib = make_dynamic_library("png", "r3-png", platform=WINDOWS)
        assert lib.import_library == Path("r3-png.lib")
        assert lib.basename == Path("r3-png")

    def test_explicit_import_library(self):
        lib = DynamicLibrary(output="x.dll", implib="lib/x-imp.lib")
        assert lib.import_library == Path("lib/x-imp.lib")

    def test_library_names_become_references(self):
        app = Application(output="a", libraries=["m", ExternalLibraryRef(output="dl")])
        assert app.libraries == (
            ExternalLibraryRef(output="m"),
            ExternalLibraryRef(output="dl"),
        )

    def test_name_defaults_to_output(self):
        assert Application(output="bin/app").name == "bin/app"

    def test_with_suffix(self):
        assert with_suffix("r3", "") == Path("r3")
        assert with_suffix("dir/r3", ".js") == Path("dir/r3.js")


class TestOtherEntities:
    """Tests for phony targets, variables and helpers."""

    def test_variable_needs_value_or_default(self):
        with pytest.raises(ConfigurationError, match="exactly one"):
            Variable(name="X")
        with pytest.raises(ConfigurationError, match="exactly one"):
            Variable(name="X", value="1", default="2")

    def test_variable_effective(self):
        assert Variable(name="X", default="d").effective == "d"
        assert Variable(name="X", value="v").effective == "v"

    def test_phony_target_tuples(self):
        target = PhonyTarget(name="clean", commands=["rm -f x"])
        assert target.commands == ("rm -f x",)

    def test_external_library_name(self):
        assert ExternalLibraryRef(output="ffi").name == "ffi"

    def test_entity_kind(self):
        assert entity_kind(ObjectLibrary(name="x")) == "object-library"
        assert entity_kind(PhonyTarget(name="top")) == "phony"

    def test_entity_output(self):
        assert entity_output(Application(output="r3")) == Path("r3")
        assert entity_output(PhonyTarget(name="top")) is None
