# SPDX-License-Identifier: MIT
"""Tests for rtbuild.configure.extensions."""

from __future__ import annotations

import pytest

from rtbuild.configure.config import ExtensionSelection, ExtensionSpec, ModuleSpec
from rtbuild.configure.extensions import select_extensions
from rtbuild.core.errors import ConfigurationError


def available() -> list[ExtensionSpec]:
    return [
        ExtensionSpec(
            name="PNG",
            modules=[
                ModuleSpec(name="lodepng", source="png/lodepng.c"),
                ModuleSpec(name="png-tools", source="png/tools.c"),
            ],
        ),
        ExtensionSpec(name="uuid", modules=[ModuleSpec(name="uuid", source="uuid/mod-uuid.c")]),
        ExtensionSpec(
            name="odbc",
            modules=[ModuleSpec(name="odbc", source="odbc/mod-odbc.c")],
            loadable=False,
        ),
    ]


def select(*entries: str):
    builtin, dynamic = select_extensions(
        available(), [ExtensionSelection.parse(e) for e in entries]
    )
    return [e.name for e in builtin], dynamic


class TestSelectExtensions:
    def test_all_builtin_by_default(self):
        builtin, dynamic = select()
        assert builtin == ["PNG", "uuid", "odbc"]
        assert dynamic == []

    def test_explicit_builtin(self):
        builtin, dynamic = select("+ uuid")
        assert builtin == ["PNG", "uuid", "odbc"]
        assert dynamic == []

    def test_remove(self):
        builtin, dynamic = select("- uuid")
        assert builtin == ["PNG", "odbc"]
        assert dynamic == []

    def test_dynamic_case_insensitive(self):
        builtin, dynamic = select("* png")
        assert builtin == ["uuid", "odbc"]
        assert [e.name for e in dynamic] == ["PNG"]
        assert [m.name for m in dynamic[0].modules] == ["lodepng", "png-tools"]

    def test_dynamic_module_subset(self):
        _, dynamic = select("* png LodePNG")
        assert [m.name for m in dynamic[0].modules] == ["lodepng"]

    def test_dynamic_order_follows_selection(self):
        _, dynamic = select("* uuid", "* png")
        assert [e.name for e in dynamic] == ["uuid", "PNG"]

    def test_first_entry_wins(self):
        builtin, dynamic = select("- uuid", "* uuid")
        assert builtin == ["PNG", "odbc"]
        assert dynamic == []

    def test_available_list_not_modified(self):
        extensions = available()
        select_extensions(extensions, [ExtensionSelection.parse("* png lodepng")])
        assert len(extensions[0].modules) == 2

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError, match="unrecognized extension name: gif"):
            select("+ gif")

    def test_not_loadable(self):
        with pytest.raises(ConfigurationError, match="odbc is not dynamically loadable"):
            select("* odbc")

    def test_no_modules_selected(self):
        with pytest.raises(ConfigurationError, match="no modules are selected for PNG"):
            select("* png jpeg")
