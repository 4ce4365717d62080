# SPDX-License-Identifier: MIT
"""Build configuration record.

BuildConfig is the validated form of a build configuration file:

    os_id = "0.4.40"
    target = "makefile"
    toolset = ["gcc", "ld", "strip"]
    debug = "symbols"
    optimize = 2
    extensions = ["- uuid", "* png"]

    [layout]
    name = "r3"
    core_sources = ["a-constants.c", "a-globals.c"]

    [[extension]]
    name = "png"
    [[extension.module]]
    name = "lodepng"
    source = "png/mod-png.c"

Command-line ``KEY=value`` arguments override top-level keys; values are
read as TOML literals when they parse as one and as plain strings
otherwise.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

from rtbuild.core.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

TARGETS = ("execution", "makefile", "nmake", "visual-studio", "vs2015")
DEBUG_VALUES = (False, True, "asserts", "symbols", "sanitize", "callgrind")
OPTIMIZE_VALUES = (False, 0, 1, 2, 3, 4, "s")
STANDARDS = (
    "c",
    "gnu89",
    "c99",
    "gnu99",
    "c11",
    "c++",
    "c++98",
    "c++0x",
    "c++11",
    "c++14",
    "c++17",
    "c++latest",
)
EXTENSION_ACTIONS = ("+", "-", "*")

# Scripts that generate the boot files; run from the make directory.
DEFAULT_PREP_COMMANDS = (
    "$(REBOL) make-natives.r",
    "$(REBOL) make-headers.r",
    "$(REBOL) make-boot.r OS_ID=$(OS_ID) GIT_COMMIT=$(GIT_COMMIT)",
    "$(REBOL) make-host-init.r",
    "$(REBOL) make-os-ext.r",
    "$(REBOL) make-host-ext.r",
    "$(REBOL) make-reb-lib.r",
)

_LOGIC_WORDS = {
    "yes": True,
    "on": True,
    "true": True,
    "no": False,
    "off": False,
    "false": False,
}

# A source with per-file flags or warning keywords.
SourceItem = Union[str, "tuple[str, tuple[str, ...]]"]


def _source_item(value: object, where: str) -> SourceItem:
    """Read a source entry: a path, or a [path, [flags...]] pair."""
    if isinstance(value, str):
        return value
    if (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and isinstance(value[0], str)
        and isinstance(value[1], (list, tuple))
    ):
        return (value[0], tuple(str(f) for f in value[1]))
    raise ConfigurationError(f"{where}: invalid source entry {value!r}")


def _str_list(data: Mapping[str, Any], key: str, where: str) -> list[str]:
    value = data.get(key, [])
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"{where}: {key} must be a list of strings")
    return list(value)


@dataclass
class ModuleSpec:
    """One module of an extension, compiled to one object library.

    Attributes:
        name: Module name.
        source: The module's main source file.
        depends: Further sources of the module.
        includes: Include directories of the module.
        definitions: Definitions of the module.
        cflags: Compiler flags of the module.
        libraries: External libraries the module needs.
        searches: Library search directories.
        ldflags: Linker flags the module needs.
    """

    name: str
    source: str
    depends: list[SourceItem] = field(default_factory=list)
    includes: list[str] = field(default_factory=list)
    definitions: list[str] = field(default_factory=list)
    cflags: list[str] = field(default_factory=list)
    libraries: list[str] = field(default_factory=list)
    searches: list[str] = field(default_factory=list)
    ldflags: list[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ModuleSpec:
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"module without a name: {dict(data)!r}")
        source = data.get("source")
        if not isinstance(source, str):
            raise ConfigurationError(f"module {name}: source must be a path")
        where = f"module {name}"
        return cls(
            name=name,
            source=source,
            depends=[_source_item(v, where) for v in data.get("depends", [])],
            includes=_str_list(data, "includes", where),
            definitions=_str_list(data, "definitions", where),
            cflags=_str_list(data, "cflags", where),
            libraries=_str_list(data, "libraries", where),
            searches=_str_list(data, "searches", where),
            ldflags=_str_list(data, "ldflags", where),
        )


@dataclass
class ExtensionSpec:
    """An extension: a named group of modules.

    Attributes:
        name: Extension name.
        modules: The extension's modules.
        loadable: Whether it can be built as a dynamic library.
        source: Extension source compiled next to its modules.
        init: Init script passed to the prep step.
    """

    name: str
    modules: list[ModuleSpec] = field(default_factory=list)
    loadable: bool = True
    source: str | None = None
    init: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ExtensionSpec:
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"extension without a name: {dict(data)!r}")
        modules = data.get("module", data.get("modules", []))
        if not isinstance(modules, list):
            raise ConfigurationError(f"extension {name}: modules must be a list")
        return cls(
            name=name,
            modules=[ModuleSpec.from_mapping(m) for m in modules],
            loadable=bool(data.get("loadable", True)),
            source=data.get("source"),
            init=data.get("init"),
        )


@dataclass(frozen=True)
class ExtensionSelection:
    """One entry of the extension selection.

    Attributes:
        action: '+' builtin, '-' removed, '*' dynamic library.
        name: Extension name.
        modules: For '*', the modules to build; None selects all.
    """

    action: str
    name: str
    modules: tuple[str, ...] | None = None

    @classmethod
    def parse(cls, value: object) -> ExtensionSelection:
        """Read a selection from ``"* png lodepng"`` or a table.

        Raises:
            ConfigurationError: If the action or the form is invalid.
        """
        if isinstance(value, str):
            parts = value.split()
            if parts and parts[0][:1] in EXTENSION_ACTIONS and len(parts[0]) > 1:
                parts = [parts[0][0], parts[0][1:], *parts[1:]]
            if len(parts) < 2:
                raise ConfigurationError(f"invalid extension selection: {value!r}")
            action, name, *modules = parts
            selected: tuple[str, ...] | None = tuple(modules) if modules else None
        elif isinstance(value, dict):
            action = value.get("action", "+")
            name = value.get("name", "")
            mods = value.get("modules")
            selected = tuple(mods) if mods is not None else None
        else:
            raise ConfigurationError(f"invalid extension selection: {value!r}")
        if action not in EXTENSION_ACTIONS:
            raise ConfigurationError(f"unrecognized extension action: {action!r}")
        if not name:
            raise ConfigurationError(f"extension selection without a name: {value!r}")
        return cls(action=action, name=name, modules=selected)


@dataclass
class Layout:
    """Where the runtime's sources live and how they are prepared.

    Attributes:
        name: Output name of the application.
        source_dir: Root of the runtime sources.
        core_sources: Interpreter core sources, relative to source_dir/core.
        generated_sources: Core sources produced by the prep step.
        os_sources: OS layer sources, relative to source_dir/os.
        os_sources_by_base: Additional OS sources per os_base.
        includes: Include directories of every compile.
        prep_commands: Commands of the prep target, in order.
        clean_files: Extra files deleted by the clean target.
        objs_dir: Root of the object tree.
    """

    name: str = "r3"
    source_dir: str = "../src"
    core_sources: list[SourceItem] = field(default_factory=list)
    generated_sources: list[str] = field(default_factory=list)
    os_sources: list[SourceItem] = field(default_factory=list)
    os_sources_by_base: dict[str, list[SourceItem]] = field(default_factory=dict)
    includes: list[str] = field(default_factory=lambda: ["../src/include"])
    prep_commands: list[str] = field(default_factory=lambda: list(DEFAULT_PREP_COMMANDS))
    clean_files: list[str] = field(default_factory=list)
    objs_dir: str = "objs"

    @property
    def extensions_dir(self) -> str:
        return f"{self.source_dir}/extensions"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Layout:
        where = "layout"
        by_base = data.get("os_sources_by_base", {})
        if not isinstance(by_base, dict):
            raise ConfigurationError("layout: os_sources_by_base must be a table")
        layout = cls(
            name=data.get("name", "r3"),
            source_dir=data.get("source_dir", "../src"),
            core_sources=[_source_item(v, where) for v in data.get("core_sources", [])],
            generated_sources=_str_list(data, "generated_sources", where),
            os_sources=[_source_item(v, where) for v in data.get("os_sources", [])],
            os_sources_by_base={
                base: [_source_item(v, where) for v in items]
                for base, items in by_base.items()
            },
            clean_files=_str_list(data, "clean_files", where),
            objs_dir=data.get("objs_dir", "objs"),
        )
        if "includes" in data:
            layout.includes = _str_list(data, "includes", where)
        if "prep_commands" in data:
            layout.prep_commands = _str_list(data, "prep_commands", where)
        return layout


def _check_choice(key: str, value: object, choices: tuple[object, ...]) -> None:
    # bool is an int; compare with the type so that True does not match 1
    if not any(value == c and type(value) is type(c) for c in choices):
        raise ConfigurationError(
            f"{key} should be one of {', '.join(repr(c) for c in choices)}, not {value!r}"
        )


@dataclass
class BuildConfig:
    """Validated build configuration.

    Attributes:
        os_id: Target system id such as '0.4.40'; None selects by os_base.
        os_base: Target os_base used when os_id is None.
        target: 'execution', 'makefile', 'nmake', 'visual-studio' or 'vs2015'.
        toolset: Tool tokens, e.g. ['gcc', 'ld'] or ['cl=cl.exe', 'link'].
        extensions: Extension selection, applied in order.
        debug: False, True, 'asserts', 'symbols', 'sanitize' or 'callgrind'.
        optimize: False/0 or 1, 2, 3, 4, 's'.
        standard: C or C++ language standard.
        rigorous: Enable the strict warning set.
        static: Link the C (and C++) runtime statically.
        with_ffi: False, 'dynamic' or 'static'.
        with_tcc: False, True, or the tcc executable.
        rebol_tool: Interpreter running the prep scripts.
        git_commit: Commit id baked into the boot files.
        includes, definitions, cflags, libraries, ldflags: Extra settings
            for every target.
        layout: Source layout.
        available_extensions: Extensions that can be selected.
    """

    os_id: str | None = None
    os_base: str = "linux"
    target: str = "execution"
    toolset: list[str] = field(default_factory=lambda: ["gcc", "ld"])
    extensions: list[ExtensionSelection] = field(default_factory=list)
    debug: bool | str = False
    optimize: bool | int | str = 2
    standard: str = "c"
    rigorous: bool = False
    static: bool = False
    with_ffi: bool | str = False
    with_tcc: bool | str = False
    rebol_tool: str | None = None
    git_commit: str | None = None
    includes: list[str] = field(default_factory=list)
    definitions: list[str] = field(default_factory=list)
    cflags: list[str] = field(default_factory=list)
    libraries: list[str] = field(default_factory=list)
    ldflags: list[str] = field(default_factory=list)
    layout: Layout = field(default_factory=Layout)
    available_extensions: list[ExtensionSpec] = field(default_factory=list)

    def validate(self) -> None:
        """Check option values.

        Raises:
            ConfigurationError: If a value is not recognized.
        """
        _check_choice("target", self.target, TARGETS)
        _check_choice("debug", self.debug, DEBUG_VALUES)
        _check_choice("optimize", self.optimize, OPTIMIZE_VALUES)
        _check_choice("standard", self.standard, STANDARDS)
        _check_choice("rigorous", self.rigorous, (False, True))
        _check_choice("static", self.static, (False, True))
        _check_choice("with_ffi", self.with_ffi, (False, "dynamic", "static"))
        if not isinstance(self.with_tcc, (bool, str)):
            raise ConfigurationError(
                f"with_tcc must be true, false or a path, not {self.with_tcc!r}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> BuildConfig:
        """Create a validated configuration from parsed TOML data.

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        data = dict(data)
        layout = Layout.from_mapping(data.pop("layout", {}))
        available = [ExtensionSpec.from_mapping(e) for e in data.pop("extension", [])]
        selection = data.pop("extensions", [])
        if isinstance(selection, str):
            selection = [selection]
        if not isinstance(selection, list):
            raise ConfigurationError("extensions must be a list")

        known = {f for f in cls.__dataclass_fields__} - {
            "layout",
            "available_extensions",
            "extensions",
        }
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")

        for key in ("toolset", "includes", "definitions", "cflags", "libraries", "ldflags"):
            if key in data:
                data[key] = _str_list(data, key, "configuration")
        if isinstance(data.get("os_id"), (int, float)):
            raise ConfigurationError("os_id must be a string such as \"0.4.40\"")

        config = cls(
            layout=layout,
            available_extensions=available,
            extensions=[ExtensionSelection.parse(s) for s in selection],
            **data,
        )
        config.validate()
        return config

    @classmethod
    def load(
        cls, path: Path | None = None, overrides: Mapping[str, str] | None = None
    ) -> BuildConfig:
        """Load a configuration file and apply command-line overrides.

        Args:
            path: TOML file; None starts from the defaults.
            overrides: KEY=value overrides of top-level keys.

        Raises:
            ConfigurationError: If the file cannot be read or is invalid.
        """
        data: dict[str, Any] = {}
        if path is not None:
            try:
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            except OSError as e:
                raise ConfigurationError(f"cannot read {path}: {e}") from e
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(f"{path}: {e}") from e
            logger.info("Loaded configuration from %s", path)
        for key, value in (overrides or {}).items():
            data[key.lower().replace("-", "_")] = parse_override(value)
        return cls.from_mapping(data)


def parse_override(value: str) -> Any:
    """Read a command-line value as a TOML literal, or keep it as a string.

    Examples:
        >>> parse_override("2"), parse_override("no"), parse_override("symbols")
        (2, False, 'symbols')
    """
    if value.lower() in _LOGIC_WORDS:
        return _LOGIC_WORDS[value.lower()]
    try:
        return tomllib.loads(f"value = {value}")["value"]
    except tomllib.TOMLDecodeError:
        return value
