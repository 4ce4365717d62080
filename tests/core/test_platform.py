# SPDX-License-Identifier: MIT
"""Tests for rtbuild.core.platform."""

from __future__ import annotations

import pytest

from rtbuild.core.errors import ConfigurationError, UnknownPlatform
from rtbuild.core.platform import (
    OsBase,
    get_target_platform,
    known_platforms,
    lookup,
    platform_for,
    set_target_platform,
)


class TestLookup:
    """Tests for the OS id registry."""

    def test_linux_x64(self) -> None:
        platform = lookup("0.4.40")
        assert platform.os_name == "linux-x64"
        assert platform.os_base is OsBase.LINUX
        assert platform.obj_suffix == ".o"
        assert platform.dll_suffix == ".so"
        assert platform.exe_suffix == ""

    def test_windows_x86(self) -> None:
        platform = lookup("0.3.01")
        assert platform.os_name == "windows-x86"
        assert platform.is_windows
        assert platform.obj_suffix == ".obj"
        assert platform.static_lib_suffix == ".lib"
        assert platform.dll_suffix == ".dll"
        assert platform.exe_suffix == ".exe"

    def test_osx_uses_dylib(self) -> None:
        assert lookup("0.2.40").dll_suffix == ".dylib"

    def test_emscripten_exe_suffix(self) -> None:
        assert lookup("0.16.01").exe_suffix == ".js"

    def test_short_os_id(self) -> None:
        """Test that leading zeros of the last part are optional."""
        assert lookup("0.3.1") == lookup("0.3.01")

    def test_unknown(self) -> None:
        with pytest.raises(UnknownPlatform) as exc_info:
            lookup("9.9.99")
        assert exc_info.value.os_id == "9.9.99"

    def test_known_platforms(self) -> None:
        names = [p.os_name for p in known_platforms()]
        assert "android-arm" in names
        assert "freebsd-x64" in names


class TestPlatformFor:
    """Tests for generic platforms."""

    @pytest.mark.parametrize(
        "base,obj,static,dll,exe",
        [
            ("posix", ".o", ".a", ".so", ""),
            ("linux", ".o", ".a", ".so", ""),
            ("android", ".o", ".a", ".so", ""),
            ("emscripten", ".o", ".a", ".so", ".js"),
            ("osx", ".o", ".a", ".dylib", ""),
            ("windows", ".obj", ".lib", ".dll", ".exe"),
        ],
    )
    def test_suffix_table(self, base, obj, static, dll, exe) -> None:
        platform = platform_for(base)
        assert (
            platform.obj_suffix,
            platform.static_lib_suffix,
            platform.dll_suffix,
            platform.exe_suffix,
        ) == (obj, static, dll, exe)

    def test_unknown_base(self) -> None:
        with pytest.raises(UnknownPlatform):
            platform_for("beos")


class TestActivePlatform:
    """Tests for the process-wide target platform."""

    def test_not_set(self) -> None:
        with pytest.raises(ConfigurationError, match="has not been set"):
            get_target_platform()

    def test_set_by_name(self) -> None:
        platform = set_target_platform("osx")
        assert get_target_platform() is platform
        assert platform.os_base is OsBase.OSX

    def test_set_same_platform_twice(self) -> None:
        set_target_platform("linux")
        assert set_target_platform(platform_for("linux")).os_base is OsBase.LINUX

    def test_change_is_rejected(self) -> None:
        set_target_platform("linux")
        with pytest.raises(ConfigurationError, match="already set"):
            set_target_platform("windows")
