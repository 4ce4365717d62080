# SPDX-License-Identifier: MIT
"""Solution assembly.

assemble_solution() instantiates the runtime's standard target set from
a BuildConfig:

- variables: REBOL_TOOL, REBOL, T, OS_ID and GIT_COMMIT,
- ``top``: the default goal, building the application and every dynamic
  extension,
- ``folders``: creates the object directories,
- ``prep``: runs the boot file generators,
- one object library per module of a builtin extension,
- ``libr3-core`` and ``libr3-os``: the interpreter core and OS layer,
- ``main``: the application,
- one dynamic library per dynamic extension, linked against the
  application. Its module object libraries are not targets of their own,
  so their objects are only compiled position-independent,
- ``check``: strips the outputs,
- ``clean``: deletes the object tree and the outputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from rtbuild.configure.extensions import select_extensions
from rtbuild.configure.options import translate_options
from rtbuild.core.commands import CreateDir, Delete, Strip
from rtbuild.core.entity import (
    DynamicLibrary,
    ExternalLibraryRef,
    ObjectFile,
    ObjectLibrary,
    PhonyTarget,
    Variable,
    make_application,
    make_dynamic_library,
    make_object_file,
    make_object_library,
    with_suffix,
)
from rtbuild.core.errors import ConfigurationError
from rtbuild.core.flags import Family, parse_flags, tag
from rtbuild.core.plan import CompileSettings, CompileStep
from rtbuild.core.solution import Solution
from rtbuild.toolchains.registry import create_tcc

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rtbuild.configure.config import BuildConfig, ExtensionSpec, SourceItem
    from rtbuild.configure.options import AppSettings
    from rtbuild.core.entity import DependencyRef, PhonyCommand
    from rtbuild.core.flags import ToolchainFlag
    from rtbuild.core.platform import TargetPlatform

logger = logging.getLogger(__name__)

# Sources the prep step generates when tcc is enabled.
TCC_GENERATED_SOURCES = ("tmp-symbols.c", "tmp-embedded-header.c")

# What a direct build runs when no target is named.
DEFAULT_GOALS = ("prep", "folders", "top")


@dataclass
class _ModuleObjects:
    libraries: list[ObjectLibrary] = field(default_factory=list)
    external: list[ExternalLibraryRef] = field(default_factory=list)
    searches: list[Path] = field(default_factory=list)
    ldflags: list[ToolchainFlag] = field(default_factory=list)


def _object_library(
    name: str,
    sources: Sequence[SourceItem],
    base_dir: str,
    objs_dir: str,
    platform: TargetPlatform,
    settings: AppSettings,
    definitions: Sequence[str],
    own_includes: Sequence[str] = (),
    own_definitions: Sequence[str] = (),
    own_cflags: Sequence[str] = (),
    extra: Sequence[ObjectFile] = (),
) -> ObjectLibrary:
    """Create an object library carrying the project-wide settings.

    Project-wide cflags come first and the library's own last, so a
    module can override them.
    """
    items: list[object] = []
    for source in sources:
        if isinstance(source, tuple):
            items.append((source[0], list(source[1])))
        else:
            items.append(source)
    return make_object_library(
        name,
        [*items, *extra],  # type: ignore[list-item]
        extra_flags=[*settings.cflags, *parse_flags(own_cflags)],
        extra_defs=[*own_definitions, *definitions, *settings.definitions],
        base_dir=base_dir,
        objs_dir=objs_dir,
        platform=platform,
        includes=[*own_includes, *settings.includes],
        optimization=settings.optimization,
        debug=settings.debug,
    )


def _module_objects(
    extension: ExtensionSpec,
    config: BuildConfig,
    platform: TargetPlatform,
    settings: AppSettings,
    definition: str,
) -> _ModuleObjects:
    layout = config.layout
    objs_dir = f"{layout.objs_dir}/extensions"
    result = _ModuleObjects()
    extension_source: list[ObjectFile] = []
    if extension.source:
        extension_source.append(
            make_object_file(
                extension.source,
                layout.extensions_dir,
                objs_dir=objs_dir,
                platform=platform,
            )
        )
    for i, module in enumerate(extension.modules):
        last = i == len(extension.modules) - 1
        result.libraries.append(
            _object_library(
                module.name,
                [module.source, *module.depends],
                layout.extensions_dir,
                objs_dir,
                platform,
                settings,
                [definition],
                own_includes=module.includes,
                own_definitions=module.definitions,
                own_cflags=module.cflags,
                extra=extension_source if last else [],
            )
        )
        result.external.extend(ExternalLibraryRef(output=lib) for lib in module.libraries)
        result.searches.extend(Path(s) for s in module.searches)
        result.ldflags.extend(parse_flags(module.ldflags))
    return result


def _dynamic_library_name(extension: ExtensionSpec, platform: TargetPlatform) -> str:
    prefix = "r3-" if platform.is_windows else "libr3-"
    return prefix + extension.name.lower()


def _object_dirs(libraries: list[ObjectLibrary], root: str) -> list[Path]:
    dirs: set[Path] = {Path(root)}

    def collect(library: ObjectLibrary) -> None:
        for dep in library.depends:
            if isinstance(dep, ObjectFile):
                parent = dep.output.parent
                while parent != Path(".") and parent not in dirs:
                    dirs.add(parent)
                    parent = parent.parent
            elif isinstance(dep, ObjectLibrary):
                collect(dep)

    for library in libraries:
        collect(library)
    return sorted(dirs, key=lambda d: d.parts)


def _module_prep_commands(
    extensions: list[ExtensionSpec],
    builtin: list[ExtensionSpec],
    config: BuildConfig,
    platform: TargetPlatform,
) -> list[PhonyCommand]:
    ext_dir = config.layout.extensions_dir
    commands: list[PhonyCommand] = []
    for extension in extensions:
        for module in extension.modules:
            commands.append(
                f"$(REBOL) make-ext-natives.r MODULE={module.name} "
                f"SRC={ext_dir}/{module.source} OS_ID={platform.os_id}"
            )
        if extension.init:
            commands.append(f"$(REBOL) make-ext-init.r SRC={ext_dir}/{extension.init}")
    commands.append(
        "$(REBOL) make-boot-ext-header.r EXTENSIONS="
        + ",".join(ext.name for ext in builtin)
    )
    return commands


def _tcc_prep_commands(
    config: BuildConfig, settings: AppSettings
) -> list[PhonyCommand]:
    """Preprocess the core header with tcc so the runtime can embed it."""
    if settings.tcc is None:
        raise ConfigurationError("tcc preprocessing needs with_tcc")
    tcc = create_tcc(settings.tcc)
    include_dir = Path(config.layout.source_dir) / "include"
    step = CompileStep(
        target="prep",
        source=include_dir / "sys-core.h",
        output=include_dir / "sys-core.i",
        settings=CompileSettings(
            includes=(*settings.includes, Path("../external/tcc/include")),
            definitions=(*settings.definitions, "REN_C_STDIO_OK"),
            cflags=("-dD", "-nostdlib"),
        ),
        preprocess=True,
    )
    return [tcc.compile(step), "$(REBOL) make-embedded-header.r"]


def assemble_solution(config: BuildConfig, platform: TargetPlatform) -> Solution:
    """Build the runtime's solution from a configuration.

    Args:
        config: Validated configuration.
        platform: Target platform; object suffixes and library names
            follow it.

    Returns:
        The solution, with targets in the order build files list them.

    Raises:
        ConfigurationError: If an option or the extension selection is
            invalid.
    """
    settings = translate_options(config, platform)
    builtin, dynamic = select_extensions(config.available_extensions, config.extensions)
    layout = config.layout
    source_dir = Path(layout.source_dir)

    variables = [
        Variable(
            name="REBOL_TOOL",
            value=config.rebol_tool or f"./r3-make{platform.exe_suffix}",
        ),
        Variable(name="REBOL", value="$(REBOL_TOOL) -qs"),
        Variable(name="T", value=f"{layout.source_dir}/tools"),
        Variable(name="OS_ID", value=platform.os_id),
        Variable(name="GIT_COMMIT", default=config.git_commit or "unknown"),
    ]

    # Builtin modules are compiled into the application.
    ext_objs: list[ObjectLibrary] = []
    app_libraries: list[ExternalLibraryRef] = list(settings.libraries)
    searches: list[Path] = list(settings.searches)
    ldflags = list(settings.ldflags)
    for extension in builtin:
        objects = _module_objects(extension, config, platform, settings, "REB_API")
        ext_objs.extend(objects.libraries)
        app_libraries.extend(objects.external)
        searches.extend(objects.searches)
        ldflags.extend(objects.ldflags)

    generated = list(layout.generated_sources)
    if settings.tcc is not None:
        generated.extend(TCC_GENERATED_SOURCES)
    core = _object_library(
        "libr3-core",
        [*layout.core_sources, *generated],
        (source_dir / "core").as_posix(),
        f"{layout.objs_dir}/core",
        platform,
        settings,
        ["REB_API"],
    )
    os_sources = [
        *layout.os_sources,
        *layout.os_sources_by_base.get(platform.os_base.value, []),
    ]
    os_lib = _object_library(
        "libr3-os",
        os_sources,
        (source_dir / "os").as_posix(),
        f"{layout.objs_dir}/os",
        platform,
        settings,
        ["REB_CORE"],
    )

    app_depends: list[DependencyRef] = [core, os_lib, *ext_objs, *app_libraries]
    app_output = with_suffix(layout.name, platform.exe_suffix)
    app = make_application(
        "main",
        app_output,
        app_depends,
        platform=platform,
        searches=tuple(searches),
        ldflags=tuple(ldflags),
        post_build=() if settings.symbols else (Strip(app_output),),
        **settings.entity_settings(),
    )

    # Dynamic extensions link against the application's exported API.
    dynamic_libs: list[DynamicLibrary] = []
    dynamic_objs: list[ObjectLibrary] = []
    for extension in dynamic:
        objects = _module_objects(extension, config, platform, settings, "EXT_DLL")
        dynamic_objs.extend(objects.libraries)
        name = _dynamic_library_name(extension, platform)
        lib_ldflags = [*objects.ldflags, tag(Family.GNU, "-Wl,--as-needed")]
        entity_settings = settings.entity_settings()
        entity_settings["definitions"] = ("EXT_DLL", *settings.definitions)
        output = with_suffix(name, platform.dll_suffix)
        library = make_dynamic_library(
            name,
            output,
            [*objects.libraries, app, *settings.libraries, *objects.external],
            platform=platform,
            searches=tuple(objects.searches),
            ldflags=tuple(lib_ldflags),
            post_build=() if settings.symbols else (Strip(output),),
            **entity_settings,
        )
        dynamic_libs.append(library)

    object_dirs = _object_dirs([core, os_lib, *ext_objs, *dynamic_objs], layout.objs_dir)
    folders = PhonyTarget(
        name="folders", commands=tuple(CreateDir(d) for d in object_dirs)
    )

    prep_commands: list[PhonyCommand] = list(layout.prep_commands)
    prep_commands.extend(
        _module_prep_commands([*builtin, *dynamic], builtin, config, platform)
    )
    if settings.tcc is not None:
        prep_commands.extend(_tcc_prep_commands(config, settings))
    prep = PhonyTarget(name="prep", depends=("REBOL_TOOL",), commands=tuple(prep_commands))

    top = PhonyTarget(name="top", depends=(app, *dynamic_libs))
    check = PhonyTarget(
        name="check",
        depends=(*dynamic_libs, app),
        commands=(Strip(app.output), *(Strip(lib.output) for lib in dynamic_libs)),
    )
    clean = PhonyTarget(
        name="clean",
        commands=(
            Delete(Path(layout.objs_dir), directory=True),
            Delete(app.output),
            *(Delete(lib.output) for lib in dynamic_libs),
            *(Delete(Path(f)) for f in layout.clean_files),
        ),
    )

    solution = Solution(
        layout.name,
        [
            *variables,
            top,
            folders,
            prep,
            *ext_objs,
            core,
            os_lib,
            app,
            *dynamic_libs,
            check,
            clean,
        ],
    )
    logger.info(
        "Assembled %s: %d builtin and %d dynamic extensions, %d targets",
        solution.name,
        len(builtin),
        len(dynamic),
        len(solution.target_names()),
    )
    return solution
