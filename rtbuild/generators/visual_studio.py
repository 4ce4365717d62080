# SPDX-License-Identifier: MIT
"""Visual Studio solution generator.

Writes one ``.vcxproj`` per solution target and a ``.sln`` that ties them
together:

- Application, DynamicLibrary and StaticLibrary become Application,
  DynamicLibrary and StaticLibrary projects.
- ObjectLibrary becomes a StaticLibrary project whose objects are consumed
  directly (as Object items) by the projects that depend on it.
- PhonyTarget becomes a Utility project running its commands as a
  pre-build event.
- Variables are reified into the commands; they have no project.

Compile settings go through the same flag projection as direct execution.
A few cl flags that MSBuild models as properties are lifted out of the
flag list: /TP and /TC (CompileAs), /stack:N (StackReserveSize) and
/subsystem:X (SubSystem).

GUIDs are derived from the solution and target names, so regenerating an
unchanged solution produces identical files.
"""

from __future__ import annotations

import logging
import uuid
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import TYPE_CHECKING

from rtbuild.core.commands import Command, native_path, render_post_build
from rtbuild.core.entity import (
    Application,
    DynamicLibrary,
    ExternalLibraryRef,
    LinkedEntity,
    ObjectFile,
    ObjectLibrary,
    PhonyTarget,
    StaticLibrary,
    Variable,
)
from rtbuild.core.errors import GenerateError
from rtbuild.core.flags import Family, project_flags
from rtbuild.core.plan import CompileSettings, flatten
from rtbuild.core.platform import platform_for
from rtbuild.generators.generator import BaseGenerator, write_if_changed

if TYPE_CHECKING:
    from rtbuild.core.context import BuildContext
    from rtbuild.core.entity import BuildEntity, DependencyRef, Entity, PhonyCommand
    from rtbuild.core.solution import Solution

logger = logging.getLogger(__name__)

MSBUILD_NAMESPACE = "http://schemas.microsoft.com/developer/msbuild/2003"
# Project type GUID of Visual C++ projects in .sln files.
VCXPROJ_TYPE_GUID = "{8BC9CEB8-8B4A-11D0-8D11-00A0C91BC942}"
_GUID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "rtbuild/visual-studio")

_WINDOWS = platform_for("windows")


def project_guid(solution_name: str, target_name: str) -> str:
    """Stable GUID of a target's project."""
    value = uuid.uuid5(_GUID_NAMESPACE, f"{solution_name}/{target_name}")
    return "{" + str(value).upper() + "}"


def optimization_property(level: object) -> str:
    """MSBuild Optimization value for an optimization level."""
    if level is None or level is False or level == 0 or level == "0":
        return "Disabled"
    if level is True or level in (2, "2"):
        return "MaxSpeed"
    if level in (1, "1", "s", "z"):
        return "MinSpace"
    return "Full"


def _optimized(level: object) -> bool:
    return optimization_property(level) != "Disabled"


def _configuration_type(entity: Entity) -> str:
    if isinstance(entity, Application):
        return "Application"
    if isinstance(entity, DynamicLibrary):
        return "DynamicLibrary"
    if isinstance(entity, (StaticLibrary, ObjectLibrary)):
        return "StaticLibrary"
    if isinstance(entity, PhonyTarget):
        return "Utility"
    if isinstance(entity, ObjectFile):
        raise GenerateError(
            f"{entity.name}: object files need an object library or a "
            "linked target in Visual Studio"
        )
    raise GenerateError(f"no Visual Studio project type for {entity.name}")


def _sub(parent: ET.Element, tag: str, text: str | None = None, **attrib: str) -> ET.Element:
    element = ET.SubElement(parent, tag, attrib)
    if text is not None:
        element.text = text
    return element


class VisualStudioGenerator(BaseGenerator):
    """Generator for Visual Studio 2017 solutions.

    Example:
        generator = VisualStudioGenerator(context)
        generator.generate(Path("build"), solution)
        # build/r3.sln, build/main.vcxproj, ...
    """

    toolset = "v141"
    tools_version = "15.00"
    format_version = "12.00"
    target_platform_version = "10.0.10586.0"

    def __init__(
        self,
        context: BuildContext,
        *,
        debug: bool = False,
        x86: bool = False,
        name: str = "vs2017",
    ) -> None:
        """Initialize the generator.

        Args:
            context: Build context; its compiler must be cl.
            debug: Generate the Debug configuration instead of Release.
            x86: Target 32-bit Windows (Win32) instead of x64.
            name: Generator name.
        """
        super().__init__(name, context)
        self.build_type = "Debug" if debug else "Release"
        self.cpu = "x86" if x86 else "x64"
        self.platform = "Win32" if x86 else "x64"

    @property
    def configuration(self) -> str:
        return f"{self.build_type}|{self.platform}"

    def generate(self, path: Path, solution: Solution) -> list[Path]:
        """Write the projects and the solution file into a directory.

        Raises:
            CyclicDependency: If the solution contains a cycle.
            GenerateError: If a target has no project equivalent.
        """
        order = solution.build_order()
        logger.info("Generating Visual Studio solution %s in %s", solution.name, path)
        written: list[Path] = []
        projects: list[str] = []
        for name in order:
            entity = solution.resolve(name)
            if isinstance(entity, ExternalLibraryRef):
                logger.debug("No project for external library %s", name)
                continue
            projects.append(name)
            project_file = path / f"{name}.vcxproj"
            write_if_changed(project_file, self.render_project(solution, entity))
            written.append(project_file)
        sln = path / f"{solution.name}.sln"
        write_if_changed(sln, self.render_solution(solution, projects))
        written.append(sln)
        return written

    # Solution file

    def render_solution(self, solution: Solution, projects: list[str]) -> str:
        """Render the .sln text for the given project names."""
        lines = [
            "",
            f"Microsoft Visual Studio Solution File, Format Version {self.format_version}",
        ]
        guids = {name: project_guid(solution.name, name) for name in projects}
        for name in projects:
            lines.append(
                f'Project("{VCXPROJ_TYPE_GUID}") = "{name}", "{name}.vcxproj", "{guids[name]}"'
            )
            deps = [d for d in solution.dependencies_of(name) if d in guids]
            if deps:
                lines.append("\tProjectSection(ProjectDependencies) = postProject")
                lines.extend(f"\t\t{guids[d]} = {guids[d]}" for d in deps)
                lines.append("\tEndProjectSection")
            lines.append("EndProject")
        lines.append("Global")
        lines.append("\tGlobalSection(SolutionConfigurationPlatforms) = preSolution")
        lines.append(f"\t\t{self.configuration} = {self.configuration}")
        lines.append("\tEndGlobalSection")
        lines.append("\tGlobalSection(ProjectConfigurationPlatforms) = postSolution")
        for name in projects:
            lines.append(f"\t\t{guids[name]}.{self.configuration}.ActiveCfg = {self.configuration}")
            lines.append(f"\t\t{guids[name]}.{self.configuration}.Build.0 = {self.configuration}")
        lines.append("\tEndGlobalSection")
        lines.append("EndGlobal")
        return "\r\n".join(lines) + "\r\n"

    # Project files

    def render_project(self, solution: Solution, entity: Entity) -> str:
        """Render the .vcxproj text of one target."""
        name = entity.name
        config_type = _configuration_type(entity)
        root = ET.Element(
            "Project",
            {
                "DefaultTargets": "Build",
                "ToolsVersion": self.tools_version,
                "xmlns": MSBUILD_NAMESPACE,
            },
        )

        configs = _sub(root, "ItemGroup", Label="ProjectConfigurations")
        config = _sub(configs, "ProjectConfiguration", Include=self.configuration)
        _sub(config, "Configuration", self.build_type)
        _sub(config, "Platform", self.platform)

        globals_ = _sub(root, "PropertyGroup", Label="Globals")
        _sub(globals_, "ProjectGuid", project_guid(solution.name, name))
        _sub(globals_, "WindowsTargetPlatformVersion", self.target_platform_version)
        if isinstance(entity, PhonyTarget):
            _sub(globals_, "RootNamespace", name)
        else:
            _sub(globals_, "Platform", self.platform)
            _sub(globals_, "Keyword", "Win32Proj")
        _sub(globals_, "ProjectName", name)

        _sub(root, "Import", Project=r"$(VCTargetsPath)\Microsoft.Cpp.Default.props")
        props = _sub(root, "PropertyGroup", Label="Configuration")
        _sub(props, "ConfigurationType", config_type)
        _sub(props, "UseOfMfc", "false")
        _sub(props, "CharacterSet", "Unicode")
        _sub(props, "PlatformToolset", self.toolset)
        _sub(root, "Import", Project=r"$(VCTargetsPath)\Microsoft.Cpp.props")

        ext = _sub(root, "ImportGroup", Label="ExtensionSettings")
        _sub(ext, "Import", Project=r"$(VCTargetsPath)\BuildCustomizations\masm.props")
        sheets = _sub(root, "ImportGroup", Label="PropertySheets")
        _sub(
            sheets,
            "Import",
            Project=r"$(UserRootDir)\Microsoft.Cpp.$(Platform).user.props",
            Condition=r"exists('$(UserRootDir)\Microsoft.Cpp.$(Platform).user.props')",
            Label="LocalAppDataPlatform",
        )
        _sub(root, "PropertyGroup", Label="UserMacros")

        if isinstance(entity, PhonyTarget):
            self._phony_project(root, solution, entity)
        else:
            self._build_project(root, solution, entity)  # type: ignore[arg-type]

        refs = [
            d
            for d in solution.dependencies_of(name)
            if not isinstance(solution.resolve(d), ExternalLibraryRef)
        ]
        if refs:
            group = _sub(root, "ItemGroup")
            for dep in refs:
                ref = _sub(group, "ProjectReference", Include=f"{dep}.vcxproj")
                _sub(ref, "Project", project_guid(solution.name, dep))

        _sub(root, "Import", Project=r"$(VCTargetsPath)\Microsoft.Cpp.targets")
        ext_targets = _sub(root, "ImportGroup", Label="ExtensionTargets")
        _sub(
            ext_targets,
            "Import",
            Project=r"$(VCTargetsPath)\BuildCustomizations\masm.targets",
        )

        ET.indent(root, space="  ")
        text = ET.tostring(root, encoding="unicode")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + text + "\n"

    def _phony_project(
        self, root: ET.Element, solution: Solution, entity: PhonyTarget
    ) -> None:
        lines = [c for c in (self._phony_command(solution, c) for c in entity.commands) if c]
        if not lines:
            return
        group = _sub(root, "ItemDefinitionGroup")
        event = _sub(group, "PreBuildEvent")
        _sub(event, "Command", "\r\n".join(lines))

    def _phony_command(self, solution: Solution, cmd: PhonyCommand) -> str | None:
        if isinstance(cmd, str):
            return solution.reify(cmd, {})
        if isinstance(cmd, Command):
            return cmd.to_shell(windows=True)
        return render_post_build(cmd, _WINDOWS, self.context.strip)

    def _build_project(
        self,
        root: ET.Element,
        solution: Solution,
        entity: ObjectLibrary | LinkedEntity,
    ) -> None:
        # Fail early on unresolvable handles and cycles.
        flatten(entity, solution)
        name = entity.name
        intdir = f"{name}.dir\\{self.build_type}\\"

        props = _sub(root, "PropertyGroup")
        _sub(props, "_ProjectFileVersion", "10.0.20506.1")
        _sub(props, "OutDir", intdir)
        _sub(props, "IntDir", intdir)
        if isinstance(entity, LinkedEntity):
            _sub(props, "TargetName", entity.basename.name)
            _sub(props, "TargetExt", entity.output.suffix)
        else:
            _sub(props, "TargetName", name)
            _sub(props, "TargetExt", ".lib")

        definitions = _sub(root, "ItemDefinitionGroup")
        self._cl_compile(definitions, CompileSettings.merge(entity, None))
        if isinstance(entity, (Application, DynamicLibrary)):
            self._link(definitions, solution, entity)
        else:
            lib = _sub(definitions, "Lib")
            _sub(lib, "AdditionalOptions", f" /machine:{self.cpu} %(AdditionalOptions)")
        if isinstance(entity, LinkedEntity):
            lines = [
                line
                for line in (
                    render_post_build(cmd, _WINDOWS, self.context.strip)
                    for cmd in entity.post_build
                )
                if line
            ]
            if lines:
                event = _sub(definitions, "PostBuildEvent")
                _sub(event, "Command", "\r\n".join(lines))

        sources: list[tuple[ObjectFile, CompileSettings | None]] = []
        objects: list[Path] = []
        self._collect_items(solution, entity, entity.depends, None, sources, objects)
        if sources:
            group = _sub(root, "ItemGroup")
            for obj, inherited in sources:
                item = _sub(group, "ClCompile", Include=native_path(obj.source, True))
                settings = CompileSettings.merge(obj, None)
                if inherited is not None:
                    settings = CompileSettings(
                        includes=obj.includes + inherited.includes,
                        definitions=obj.definitions + inherited.definitions,
                        cflags=inherited.cflags + obj.cflags,
                        optimization=(
                            obj.optimization
                            if obj.optimization is not None
                            else inherited.optimization
                        ),
                        debug=obj.debug if obj.debug is not None else inherited.debug,
                    )
                self._item_settings(item, settings)
                # Consumers reference the object by its output path.
                _sub(item, "ObjectFileName", native_path(obj.output, True))
        if objects:
            group = _sub(root, "ItemGroup")
            for output in objects:
                _sub(group, "Object", Include=native_path(output, True))

    def _collect_items(
        self,
        solution: Solution,
        owner: BuildEntity,
        refs: tuple[DependencyRef, ...],
        inherited: CompileSettings | None,
        sources: list[tuple[ObjectFile, CompileSettings | None]],
        objects: list[Path],
        seen: set[str] | None = None,
    ) -> None:
        """Split an entity's depends into sources it compiles and objects it uses.

        Object libraries that have their own project contribute their
        outputs as Object items. Others are inlined: their objects are
        compiled here with the library's settings.
        """
        if seen is None:
            seen = set()
        for ref in refs:
            dep = solution.resolve(ref) if isinstance(ref, str) else ref
            if isinstance(dep, ObjectFile):
                key = dep.output.as_posix()
                if key not in seen:
                    seen.add(key)
                    sources.append((dep, inherited))
            elif isinstance(dep, ObjectLibrary):
                if solution.target_name_of(dep) is not None:
                    for output in flatten(dep, solution).outputs:
                        if output.as_posix() not in seen:
                            seen.add(output.as_posix())
                            objects.append(output)
                else:
                    self._collect_items(
                        solution,
                        dep,
                        dep.depends,
                        CompileSettings.merge(dep, None),
                        sources,
                        objects,
                        seen,
                    )
            elif isinstance(dep, (Variable, PhonyTarget, LinkedEntity, ExternalLibraryRef)):
                continue
            else:
                raise GenerateError(f"{owner.name}: unsupported dependency {dep!r}")

    def _cl_compile(self, parent: ET.Element, settings: CompileSettings) -> None:
        cflags = project_flags(Family.MSC, settings.cflags)
        cl = _sub(parent, "ClCompile")
        includes = [native_path(i, True) for i in settings.includes]
        _sub(
            cl,
            "AdditionalIncludeDirectories",
            ";".join(includes + ["%(AdditionalIncludeDirectories)"]),
        )
        _sub(cl, "AssemblerListingLocation", f"{self.build_type}/")
        if not _optimized(settings.optimization):
            _sub(cl, "BasicRuntimeChecks", "EnableFastChecks")
        if "/TP" in cflags:
            _sub(cl, "CompileAs", "CompileAsCpp")
        elif "/TC" in cflags:
            _sub(cl, "CompileAs", "CompileAsC")
        debug = self.build_type == "Debug"
        _sub(cl, "DebugInformationFormat", "ProgramDatabase" if debug else "")
        _sub(cl, "ExceptionHandling", "Sync")
        _sub(cl, "InlineFunctionExpansion", "Disabled" if debug else "AnySuitable")
        _sub(cl, "Optimization", optimization_property(settings.optimization))
        _sub(cl, "PrecompiledHeader", "NotUsing")
        _sub(cl, "RuntimeLibrary", "MultiThreadedDebugDLL" if debug else "MultiThreadedDLL")
        _sub(cl, "RuntimeTypeInfo", "true")
        _sub(cl, "WarningLevel", "Level3")
        _sub(cl, "TreatWarningAsError", "")
        definitions = project_flags(Family.MSC, settings.definitions)
        _sub(
            cl,
            "PreprocessorDefinitions",
            ";".join(definitions + ["%(PreprocessorDefinitions)"]),
        )
        _sub(cl, "ObjectFileName", "$(IntDir)")
        if cflags:
            _sub(cl, "AdditionalOptions", " ".join(cflags) + " %(AdditionalOptions)")

    def _item_settings(self, item: ET.Element, settings: CompileSettings) -> None:
        """Per-file settings of a ClCompile item, on top of the project's."""
        if settings.includes:
            includes = [native_path(i, True) for i in settings.includes]
            _sub(
                item,
                "AdditionalIncludeDirectories",
                ";".join(includes + ["%(AdditionalIncludeDirectories)"]),
            )
        definitions = project_flags(Family.MSC, settings.definitions)
        if definitions:
            _sub(
                item,
                "PreprocessorDefinitions",
                ";".join(definitions + ["%(PreprocessorDefinitions)"]),
            )
        cflags = project_flags(Family.MSC, settings.cflags)
        if cflags:
            _sub(item, "AdditionalOptions", " ".join(cflags) + " %(AdditionalOptions)")
        if settings.optimization is not None:
            _sub(item, "Optimization", optimization_property(settings.optimization))

    def _link(
        self,
        parent: ET.Element,
        solution: Solution,
        entity: Application | DynamicLibrary,
    ) -> None:
        ldflags = project_flags(Family.MSC, entity.ldflags)
        stack: str | None = None
        subsystem = "Console"
        options: list[str] = []
        for flag in ldflags:
            lower = flag.lower()
            if lower.startswith("/stack:"):
                stack = flag.split(":", 1)[1]
            elif lower.startswith("/subsystem:"):
                subsystem = flag.split(":", 1)[1].capitalize()
            else:
                options.append(flag)
        options.append(f"/machine:{self.cpu}")

        libraries: list[str] = []
        searches = [native_path(s, True) for s in entity.searches]
        plan = flatten(entity, solution)
        if plan.link_step is None:
            raise GenerateError(f"{entity.name}: nothing to link")
        for item in plan.link_step.inputs:
            if isinstance(item, ExternalLibraryRef):
                lib = native_path(item.output, True)
                if not item.by_path and not lib.endswith(".lib"):
                    lib += ".lib"
                libraries.append(lib)
            elif isinstance(item, LinkedEntity):
                # Built by its own project into <name>.dir\<config>\.
                lib_file = (
                    item.output if isinstance(item, StaticLibrary) else item.import_library
                )
                libraries.append(lib_file.name)
                search = f"{item.name}.dir\\{self.build_type}"
                if search not in searches:
                    searches.append(search)

        link = _sub(parent, "Link")
        _sub(link, "AdditionalOptions", " ".join(options) + " %(AdditionalOptions)")
        _sub(link, "AdditionalDependencies", ";".join(libraries))
        _sub(
            link,
            "AdditionalLibraryDirectories",
            ";".join(searches + ["%(AdditionalLibraryDirectories)"]),
        )
        debug = self.build_type == "Debug"
        _sub(link, "GenerateDebugInformation", "Debug" if debug else "false")
        _sub(link, "IgnoreSpecificDefaultLibraries", "%(IgnoreSpecificDefaultLibraries)")
        _sub(link, "ImportLibrary", native_path(entity.import_library, True))
        _sub(link, "ProgramDataBaseFile", native_path(entity.basename, True) + ".pdb")
        if stack is not None:
            _sub(link, "StackReserveSize", stack)
        _sub(link, "SubSystem", subsystem)
        _sub(link, "Version", "")


class VisualStudio2015Generator(VisualStudioGenerator):
    """Generator for Visual Studio 2015 solutions."""

    toolset = "v140"
    tools_version = "14.00"

    def __init__(
        self, context: BuildContext, *, debug: bool = False, x86: bool = False
    ) -> None:
        super().__init__(context, debug=debug, x86=x86, name="vs2015")
