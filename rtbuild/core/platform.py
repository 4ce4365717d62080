# SPDX-License-Identifier: MIT
"""Target platform registry.

Maps the runtime's OS ids (``0.4.40``) and OS bases (``linux``) to the
filename conventions used when computing output paths. The active target
platform is chosen once per process with set_target_platform(); code that
must stay test-isolated should carry a TargetPlatform explicitly through
a BuildContext instead of reading the process-wide value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from rtbuild.core.errors import ConfigurationError, UnknownPlatform

logger = logging.getLogger(__name__)


class OsBase(str, Enum):
    """OS family a target platform belongs to."""

    POSIX = "posix"
    LINUX = "linux"
    ANDROID = "android"
    EMSCRIPTEN = "emscripten"
    OSX = "osx"
    WINDOWS = "windows"


@dataclass(frozen=True)
class TargetPlatform:
    """Filename conventions of a target platform.

    Attributes:
        os_id: Runtime OS id (e.g. '0.4.40'), or the OS base name for
            platforms obtained with platform_for().
        os_name: Human readable name (e.g. 'linux-x64').
        os_base: OS family.
        obj_suffix: Object file suffix ('.o', '.obj').
        static_lib_suffix: Static library suffix ('.a', '.lib').
        dll_suffix: Dynamic library suffix ('.so', '.dylib', '.dll').
        exe_suffix: Executable suffix ('', '.exe', '.js').
    """

    os_id: str
    os_name: str
    os_base: OsBase
    obj_suffix: str = ".o"
    static_lib_suffix: str = ".a"
    dll_suffix: str = ".so"
    exe_suffix: str = ""

    @property
    def is_windows(self) -> bool:
        return self.os_base is OsBase.WINDOWS

    @property
    def is_posix(self) -> bool:
        return not self.is_windows

    def __str__(self) -> str:
        return f"{self.os_name} ({self.os_id})"


# obj, static lib, dll, exe
_SUFFIXES: dict[OsBase, tuple[str, str, str, str]] = {
    OsBase.POSIX: (".o", ".a", ".so", ""),
    OsBase.LINUX: (".o", ".a", ".so", ""),
    OsBase.ANDROID: (".o", ".a", ".so", ""),
    OsBase.EMSCRIPTEN: (".o", ".a", ".so", ".js"),
    OsBase.OSX: (".o", ".a", ".dylib", ""),
    OsBase.WINDOWS: (".obj", ".lib", ".dll", ".exe"),
}

# os-id, name, base
SYSTEMS: tuple[tuple[str, str, OsBase], ...] = (
    ("0.1.03", "amiga", OsBase.POSIX),
    ("0.2.04", "osx-ppc", OsBase.OSX),
    ("0.2.05", "osx-x86", OsBase.OSX),
    ("0.2.40", "osx-x64", OsBase.OSX),
    ("0.3.01", "windows-x86", OsBase.WINDOWS),
    ("0.3.02", "windows-x64", OsBase.WINDOWS),
    ("0.3.40", "windows-x64-mingw", OsBase.WINDOWS),
    ("0.4.02", "linux-x86", OsBase.LINUX),
    ("0.4.03", "linux-x86", OsBase.LINUX),
    ("0.4.04", "linux-x86", OsBase.LINUX),
    ("0.4.10", "linux-ppc", OsBase.LINUX),
    ("0.4.20", "linux-arm", OsBase.LINUX),
    ("0.4.21", "linux-arm", OsBase.LINUX),
    ("0.4.30", "linux-mips", OsBase.LINUX),
    ("0.4.40", "linux-x64", OsBase.LINUX),
    ("0.5.75", "haiku", OsBase.POSIX),
    ("0.7.02", "freebsd-x86", OsBase.POSIX),
    ("0.7.40", "freebsd-x64", OsBase.POSIX),
    ("0.9.04", "openbsd", OsBase.POSIX),
    ("0.13.01", "android-arm", OsBase.ANDROID),
    ("0.16.01", "emscripten", OsBase.EMSCRIPTEN),
)


def _make_platform(os_id: str, os_name: str, os_base: OsBase) -> TargetPlatform:
    obj, static, dll, exe = _SUFFIXES[os_base]
    return TargetPlatform(
        os_id=os_id,
        os_name=os_name,
        os_base=os_base,
        obj_suffix=obj,
        static_lib_suffix=static,
        dll_suffix=dll,
        exe_suffix=exe,
    )


_REGISTRY: dict[str, TargetPlatform] = {
    os_id: _make_platform(os_id, name, base) for os_id, name, base in SYSTEMS
}


def _normalize_os_id(os_id: str) -> str:
    """Normalize an OS id so that '0.3.1' and '0.3.01' compare equal."""
    parts = os_id.strip().split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return os_id.strip()
    return f"{int(parts[0])}.{int(parts[1])}.{int(parts[2]):02d}"


def lookup(os_id: str) -> TargetPlatform:
    """Look up a platform by its OS id.

    Args:
        os_id: OS id such as '0.4.40' (leading zeros in the last part
            are optional).

    Returns:
        The registered TargetPlatform.

    Raises:
        UnknownPlatform: If the id is not registered.
    """
    platform = _REGISTRY.get(_normalize_os_id(os_id))
    if platform is None:
        raise UnknownPlatform(os_id)
    return platform


def platform_for(os_base: OsBase | str) -> TargetPlatform:
    """Return a generic platform for an OS base (e.g. 'linux')."""
    try:
        base = OsBase(os_base)
    except ValueError:
        raise UnknownPlatform(str(os_base)) from None
    return _make_platform(base.value, base.value, base)


def known_platforms() -> list[TargetPlatform]:
    """All registered platforms, in registry order."""
    return list(_REGISTRY.values())


_active: TargetPlatform | None = None


def set_target_platform(platform: TargetPlatform | OsBase | str) -> TargetPlatform:
    """Set the process-wide target platform.

    May be called more than once with the same platform; choosing a
    different platform after the first call is an error because output
    paths may already have been computed.

    Args:
        platform: A TargetPlatform, an OsBase, or an OS base name.

    Returns:
        The active platform.

    Raises:
        ConfigurationError: If a different platform is already active.
    """
    global _active
    if not isinstance(platform, TargetPlatform):
        platform = platform_for(platform)
    if _active is not None:
        if _active != platform:
            raise ConfigurationError(
                f"target platform already set to {_active}, cannot change to {platform}"
            )
        return _active
    logger.debug("Target platform: %s", platform)
    _active = platform
    return platform


def get_target_platform() -> TargetPlatform:
    """Return the active target platform.

    Raises:
        ConfigurationError: If set_target_platform() was never called.
    """
    if _active is None:
        raise ConfigurationError("target platform has not been set")
    return _active


def _reset_target_platform() -> None:
    """Forget the active platform. Only for tests."""
    global _active
    _active = None
