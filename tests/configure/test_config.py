# SPDX-License-Identifier: MIT
"""Tests for rtbuild.configure.config."""

from __future__ import annotations

import pytest

from rtbuild.configure.config import (
    DEFAULT_PREP_COMMANDS,
    BuildConfig,
    ExtensionSelection,
    Layout,
    ModuleSpec,
    parse_override,
)
from rtbuild.core.errors import ConfigurationError

CONFIG_TOML = """\
os_id = "0.4.40"
target = "makefile"
toolset = ["clang", "ld", "strip"]
debug = "symbols"
optimize = "s"
extensions = ["- uuid", "* png lodepng"]

[layout]
name = "r3"
core_sources = ["a-lib.c", ["n-math.c", ["no-uninitialized"]]]
os_sources = ["host-main.c"]

[layout.os_sources_by_base]
linux = ["linux/host-lib.c"]

[[extension]]
name = "png"

[[extension.module]]
name = "lodepng"
source = "png/lodepng.c"
definitions = ["LODEPNG_NO_COMPILE_ALLOCATORS"]

[[extension]]
name = "uuid"
loadable = false

[[extension.module]]
name = "uuid"
source = "uuid/mod-uuid.c"
libraries = ["uuid"]
"""


class TestBuildConfig:
    def test_defaults(self):
        config = BuildConfig.from_mapping({})
        assert config.os_id is None
        assert config.target == "execution"
        assert config.toolset == ["gcc", "ld"]
        assert config.debug is False
        assert config.optimize == 2
        assert config.layout.includes == ["../src/include"]
        assert config.layout.prep_commands == list(DEFAULT_PREP_COMMANDS)

    def test_load_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(CONFIG_TOML)
        config = BuildConfig.load(path)
        assert config.os_id == "0.4.40"
        assert config.target == "makefile"
        assert config.toolset == ["clang", "ld", "strip"]
        assert config.debug == "symbols"
        assert config.optimize == "s"
        assert config.extensions == [
            ExtensionSelection("-", "uuid"),
            ExtensionSelection("*", "png", ("lodepng",)),
        ]
        assert config.layout.core_sources == [
            "a-lib.c",
            ("n-math.c", ("no-uninitialized",)),
        ]
        assert config.layout.os_sources_by_base == {"linux": ["linux/host-lib.c"]}
        png, uuid = config.available_extensions
        assert png.loadable
        assert png.modules[0].definitions == ["LODEPNG_NO_COMPILE_ALLOCATORS"]
        assert not uuid.loadable
        assert uuid.modules[0].libraries == ["uuid"]

    def test_overrides(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(CONFIG_TOML)
        config = BuildConfig.load(
            path, {"DEBUG": "no", "optimize": "2", "os-id": "0.3.02", "extensions": "* png"}
        )
        assert config.debug is False
        assert config.optimize == 2
        assert config.os_id == "0.3.02"
        assert config.extensions == [ExtensionSelection("*", "png")]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="cannot read"):
            BuildConfig.load(tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("target = \n")
        with pytest.raises(ConfigurationError, match="config.toml"):
            BuildConfig.load(path)

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="unknown configuration keys: colour"):
            BuildConfig.from_mapping({"colour": "blue"})

    @pytest.mark.parametrize(
        "key,value",
        [
            ("target", "ninja"),
            ("debug", "lots"),
            ("optimize", 9),
            ("standard", "c23"),
            ("rigorous", 1),
            ("with_ffi", "shared"),
            ("with_tcc", 3),
        ],
    )
    def test_invalid_values(self, key, value):
        with pytest.raises(ConfigurationError):
            BuildConfig.from_mapping({key: value})

    def test_numeric_os_id(self):
        with pytest.raises(ConfigurationError, match="os_id"):
            BuildConfig.from_mapping({"os_id": 4.4})

    def test_string_list_required(self):
        with pytest.raises(ConfigurationError, match="cflags must be a list of strings"):
            BuildConfig.from_mapping({"cflags": [1, 2]})

    def test_single_string_accepted_for_lists(self):
        config = BuildConfig.from_mapping({"cflags": "-march=native"})
        assert config.cflags == ["-march=native"]


class TestLayout:
    def test_prep_commands_kept_unless_given(self):
        assert Layout.from_mapping({"name": "r3"}).prep_commands == list(
            DEFAULT_PREP_COMMANDS
        )
        assert Layout.from_mapping({"prep_commands": ["true"]}).prep_commands == ["true"]

    def test_invalid_source(self):
        with pytest.raises(ConfigurationError, match="invalid source entry"):
            Layout.from_mapping({"core_sources": [["a.c", "-O0", "-g"]]})

    def test_extensions_dir(self):
        assert Layout(source_dir="src").extensions_dir == "src/extensions"


class TestModuleSpec:
    def test_requires_source(self):
        with pytest.raises(ConfigurationError, match="source must be a path"):
            ModuleSpec.from_mapping({"name": "png"})

    def test_requires_name(self):
        with pytest.raises(ConfigurationError, match="module without a name"):
            ModuleSpec.from_mapping({"source": "png.c"})


class TestExtensionSelection:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("+ png", ExtensionSelection("+", "png")),
            ("- uuid", ExtensionSelection("-", "uuid")),
            ("* png lodepng", ExtensionSelection("*", "png", ("lodepng",))),
            ("*png", ExtensionSelection("*", "png")),
        ],
    )
    def test_parse_string(self, text, expected):
        assert ExtensionSelection.parse(text) == expected

    def test_parse_table(self):
        selection = ExtensionSelection.parse(
            {"action": "*", "name": "png", "modules": ["lodepng"]}
        )
        assert selection == ExtensionSelection("*", "png", ("lodepng",))

    def test_missing_action(self):
        with pytest.raises(ConfigurationError, match="invalid extension selection"):
            ExtensionSelection.parse("png")

    def test_unknown_action(self):
        with pytest.raises(ConfigurationError, match="unrecognized extension action"):
            ExtensionSelection.parse("? png")

    def test_wrong_type(self):
        with pytest.raises(ConfigurationError):
            ExtensionSelection.parse(5)


@pytest.mark.parametrize(
    "text,value",
    [
        ("2", 2),
        ("no", False),
        ("Yes", True),
        ("off", False),
        ("symbols", "symbols"),
        ("0.4.40", "0.4.40"),
        ('["gcc", "ld"]', ["gcc", "ld"]),
        ('"quoted"', "quoted"),
    ],
)
def test_parse_override(text, value):
    assert parse_override(text) == value
