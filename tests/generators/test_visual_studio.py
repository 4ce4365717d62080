# SPDX-License-Identifier: MIT
"""Tests for rtbuild.generators.visual_studio."""

from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest

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
from rtbuild.core.errors import GenerateError
from rtbuild.core.flags import tag
from rtbuild.core.platform import platform_for
from rtbuild.core.solution import Solution
from rtbuild.generators import VisualStudio2015Generator, VisualStudioGenerator
from rtbuild.generators.visual_studio import (
    MSBUILD_NAMESPACE,
    optimization_property,
    project_guid,
)

WINDOWS = platform_for("windows")


def msvc_context() -> BuildContext:
    return BuildContext.from_toolset(WINDOWS, ["cl", "link"])


def make_solution() -> Solution:
    core = make_object_library(
        "libr3-core",
        ["a.c"],
        extra_defs=["REB_API"],
        base_dir="../src/core",
        objs_dir="objs/core",
        platform=WINDOWS,
    )
    app = make_application(
        "main",
        "r3",
        [core, ExternalLibraryRef(output="ws2_32")],
        platform=WINDOWS,
        cflags=[tag("msc", "/TC"), tag("gnu", "-Wall")],
        ldflags=[tag("msc", "/stack:4194304"), tag("msc", "/subsystem:windows")],
        optimization=2,
    )
    ext = make_dynamic_library(
        "ext",
        "r3-ext",
        [make_object_file("e.c", "../src/extensions", platform=WINDOWS), app],
        platform=WINDOWS,
    )
    return Solution(
        "r3",
        [
            Variable(name="TOOL", value="r3-make.exe"),
            PhonyTarget(name="prep", depends=("TOOL",), commands=("$(TOOL) -qs make-boot.r",)),
            core,
            app,
            ext,
        ],
    )


def element(root: ET.Element, tag_name: str) -> ET.Element:
    found = root.find(f".//{{{MSBUILD_NAMESPACE}}}{tag_name}")
    assert found is not None, tag_name
    return found


def elements(root: ET.Element, tag_name: str) -> list[ET.Element]:
    return list(root.iter(f"{{{MSBUILD_NAMESPACE}}}{tag_name}"))


@pytest.fixture
def generated(tmp_path):
    written = VisualStudioGenerator(msvc_context()).generate(tmp_path, make_solution())
    return tmp_path, written


class TestProjectGuid:
    def test_stable(self):
        assert project_guid("r3", "main") == project_guid("r3", "main")

    def test_distinct(self):
        assert project_guid("r3", "main") != project_guid("r3", "ext")
        assert project_guid("r3", "main") != project_guid("other", "main")

    def test_format(self):
        guid = project_guid("r3", "main")
        assert guid.startswith("{") and guid.endswith("}")
        assert len(guid) == 38
        assert guid == guid.upper()


@pytest.mark.parametrize(
    "level,value",
    [
        (None, "Disabled"),
        (False, "Disabled"),
        (0, "Disabled"),
        (True, "MaxSpeed"),
        (2, "MaxSpeed"),
        (1, "MinSpace"),
        ("s", "MinSpace"),
        (3, "Full"),
        (4, "Full"),
    ],
)
def test_optimization_property(level, value):
    assert optimization_property(level) == value


class TestVisualStudioGenerator:
    """Tests for the Visual Studio 2017 generator."""

    def test_files_in_build_order(self, generated):
        path, written = generated
        assert [p.name for p in written] == [
            "prep.vcxproj",
            "libr3-core.vcxproj",
            "main.vcxproj",
            "ext.vcxproj",
            "r3.sln",
        ]
        assert all(p.parent == path for p in written)

    def test_variables_have_no_project(self, generated):
        path, _ = generated
        assert not (path / "TOOL.vcxproj").exists()

    def test_application_project(self, generated):
        path, _ = generated
        root = ET.parse(path / "main.vcxproj").getroot()
        assert element(root, "ConfigurationType").text == "Application"
        assert element(root, "PlatformToolset").text == "v141"
        assert element(root, "ProjectGuid").text == project_guid("r3", "main")
        assert element(root, "TargetName").text == "r3"
        assert element(root, "TargetExt").text == ".exe"
        assert element(root, "ImportLibrary").text == "r3.lib"

    def test_lifted_compile_properties(self, generated):
        path, _ = generated
        root = ET.parse(path / "main.vcxproj").getroot()
        compile_settings = element(root, "ClCompile")
        assert element(compile_settings, "CompileAs").text == "CompileAsC"
        assert element(compile_settings, "Optimization").text == "MaxSpeed"
        assert element(compile_settings, "AdditionalOptions").text == "/TC %(AdditionalOptions)"

    def test_lifted_link_properties(self, generated):
        path, _ = generated
        root = ET.parse(path / "main.vcxproj").getroot()
        link = element(root, "Link")
        assert element(link, "StackReserveSize").text == "4194304"
        assert element(link, "SubSystem").text == "Windows"
        assert element(link, "AdditionalOptions").text == "/machine:x64 %(AdditionalOptions)"
        assert element(link, "AdditionalDependencies").text == "ws2_32.lib"

    def test_object_library_objects_consumed(self, generated):
        path, _ = generated
        root = ET.parse(path / "main.vcxproj").getroot()
        objects = [e.get("Include") for e in elements(root, "Object")]
        assert objects == ["objs\\core\\a.obj"]
        refs = [e.get("Include") for e in elements(root, "ProjectReference")]
        assert refs == ["libr3-core.vcxproj"]

    def test_object_library_project(self, generated):
        path, _ = generated
        root = ET.parse(path / "libr3-core.vcxproj").getroot()
        assert element(root, "ConfigurationType").text == "StaticLibrary"
        assert element(root, "TargetExt").text == ".lib"
        assert (
            element(root, "PreprocessorDefinitions").text
            == "REB_API;%(PreprocessorDefinitions)"
        )
        sources = [e.get("Include") for e in elements(root, "ClCompile") if e.get("Include")]
        assert sources == ["..\\src\\core\\a.c"]

    def test_objects_written_where_consumers_read_them(self, generated):
        path, _ = generated
        producer = ET.parse(path / "libr3-core.vcxproj").getroot()
        written = [
            element(item, "ObjectFileName").text
            for item in elements(producer, "ClCompile")
            if item.get("Include")
        ]
        consumer = ET.parse(path / "main.vcxproj").getroot()
        read = [e.get("Include") for e in elements(consumer, "Object")]
        assert written == read == ["objs\\core\\a.obj"]

    def test_dynamic_library_links_import_library(self, generated):
        path, _ = generated
        root = ET.parse(path / "ext.vcxproj").getroot()
        assert element(root, "ConfigurationType").text == "DynamicLibrary"
        link = element(root, "Link")
        assert element(link, "AdditionalDependencies").text == "r3.lib"
        assert (
            element(link, "AdditionalLibraryDirectories").text
            == "main.dir\\Release;%(AdditionalLibraryDirectories)"
        )

    def test_phony_project(self, generated):
        path, _ = generated
        root = ET.parse(path / "prep.vcxproj").getroot()
        assert element(root, "ConfigurationType").text == "Utility"
        event = element(root, "PreBuildEvent")
        assert element(event, "Command").text == "r3-make.exe -qs make-boot.r"

    def test_solution_file(self, generated):
        path, _ = generated
        data = (path / "r3.sln").read_bytes()
        assert b"\r\n" in data
        text = data.decode("utf-8")
        main_guid = project_guid("r3", "main")
        core_guid = project_guid("r3", "libr3-core")
        assert f'= "main", "main.vcxproj", "{main_guid}"' in text
        assert f"\t\t{core_guid} = {core_guid}" in text
        assert f"{main_guid}.Release|x64.Build.0 = Release|x64" in text

    def test_regenerate_identical(self, tmp_path):
        generator = VisualStudioGenerator(msvc_context())
        generator.generate(tmp_path / "a", make_solution())
        generator.generate(tmp_path / "b", make_solution())
        for name in ("main.vcxproj", "ext.vcxproj", "r3.sln"):
            assert (tmp_path / "a" / name).read_bytes() == (tmp_path / "b" / name).read_bytes()

    def test_inlined_object_library(self, tmp_path):
        """Test that a library without its own project is compiled in place."""
        inner = make_object_library(
            "inner", ["x.c"], extra_defs=["INLINE"], platform=WINDOWS
        )
        app = make_application("main", "main", [inner], platform=WINDOWS)
        VisualStudioGenerator(msvc_context()).generate(tmp_path, Solution("s", [app]))
        root = ET.parse(tmp_path / "main.vcxproj").getroot()
        items = [e for e in elements(root, "ClCompile") if e.get("Include") == "x.c"]
        assert len(items) == 1
        assert (
            element(items[0], "PreprocessorDefinitions").text
            == "INLINE;%(PreprocessorDefinitions)"
        )
        assert not elements(root, "Object")

    def test_external_library_skipped(self, tmp_path):
        app = make_application("main", "main", ["ffi"], platform=WINDOWS)
        solution = Solution("s", [ExternalLibraryRef(output="ffi"), app])
        written = VisualStudioGenerator(msvc_context()).generate(tmp_path, solution)
        assert [p.name for p in written] == ["main.vcxproj", "s.sln"]
        root = ET.parse(tmp_path / "main.vcxproj").getroot()
        assert not elements(root, "ProjectReference")

    def test_object_file_target(self, tmp_path):
        solution = Solution("s", [make_object_file("x.c", platform=WINDOWS)])
        with pytest.raises(GenerateError, match="object files"):
            VisualStudioGenerator(msvc_context()).generate(tmp_path, solution)

    def test_debug_and_x86(self, tmp_path):
        generator = VisualStudioGenerator(msvc_context(), debug=True, x86=True)
        assert generator.configuration == "Debug|Win32"
        generator.generate(tmp_path, make_solution())
        root = ET.parse(tmp_path / "main.vcxproj").getroot()
        assert element(root, "RuntimeLibrary").text == "MultiThreadedDebugDLL"
        assert element(root, "AdditionalOptions").text.startswith("/TC")
        link = element(root, "Link")
        assert "/machine:x86" in element(link, "AdditionalOptions").text


class TestVisualStudio2015Generator:
    def test_toolset(self, tmp_path):
        generator = VisualStudio2015Generator(msvc_context())
        assert generator.name == "vs2015"
        generator.generate(tmp_path, make_solution())
        root = ET.parse(tmp_path / "main.vcxproj").getroot()
        assert element(root, "PlatformToolset").text == "v140"
        assert root.get("ToolsVersion") == "14.00"
