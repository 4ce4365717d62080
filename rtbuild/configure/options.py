# SPDX-License-Identifier: MIT
"""Translation of user options into target settings.

translate_options() turns the debug/optimize/standard/rigorous/static
options of a BuildConfig into the settings every runtime target starts
from (AppSettings). Flags are tagged with their toolchain family, so the
same settings serve gcc, clang and cl builds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from rtbuild.core.entity import ExternalLibraryRef
from rtbuild.core.errors import ConfigurationError
from rtbuild.core.flags import Family, parse_flags, tag

if TYPE_CHECKING:
    from rtbuild.configure.config import BuildConfig
    from rtbuild.core.entity import Debug, Optimization
    from rtbuild.core.flags import ToolchainFlag
    from rtbuild.core.platform import TargetPlatform

logger = logging.getLogger(__name__)

GNU_C_STANDARDS = ("gnu89", "c99", "gnu99", "c11")
CXX_STANDARDS = ("c++98", "c++0x", "c++11", "c++14", "c++17", "c++latest")

TCC_ROOT = "../external/tcc"

_RIGOROUS_GNU = (
    "-Wchar-subscripts",
    "-Wwrite-strings",
    "-Wundef",
    "-Wformat=2",
    "-Wdisabled-optimization",
    "-Wlogical-op",
    "-Wredundant-decls",
    "-Woverflow",
    "-Wpointer-arith",
    "-Wparentheses",
    "-Wmain",
    "-Wtype-limits",
    "-Wclobbered",
    "-Wno-long-long",
)

# Warnings cl reports under /Wall that the runtime's code deliberately trips.
_RIGOROUS_MSC_DISABLED = (
    "4820",
    "4668",
    "4365",
    "4245",
    "4242",
    "4514",
    "4710",
    "4711",
    "4191",
    "4061",
    "4611",
    "4706",
    "4738",
    "5026",
    "4626",
    "5027",
    "4625",
    "5039",
)


@dataclass
class AppSettings:
    """Settings shared by the runtime's targets.

    Attributes:
        includes: Include directories.
        definitions: Preprocessor definitions.
        cflags: Compiler flags.
        ldflags: Linker flags.
        libraries: External libraries of the application.
        searches: Library search directories.
        optimization: Optimization level.
        debug: Debug info level.
        symbols: Keep symbols (outputs are not stripped).
        cplusplus: Sources are compiled as C++.
        sanitize: Build with the address sanitizer.
        tcc: tcc executable when tcc preprocessing is enabled.
    """

    includes: list[Path] = field(default_factory=list)
    definitions: list[ToolchainFlag] = field(default_factory=list)
    cflags: list[ToolchainFlag] = field(default_factory=list)
    ldflags: list[ToolchainFlag] = field(default_factory=list)
    libraries: list[ExternalLibraryRef] = field(default_factory=list)
    searches: list[Path] = field(default_factory=list)
    optimization: Optimization = 2
    debug: Debug = False
    symbols: bool = False
    cplusplus: bool = False
    sanitize: bool = False
    tcc: str | None = None

    def entity_settings(self) -> dict[str, object]:
        """Keyword arguments for entity constructors."""
        return {
            "includes": tuple(self.includes),
            "definitions": tuple(self.definitions),
            "cflags": tuple(self.cflags),
            "optimization": self.optimization,
            "debug": self.debug,
        }


def apply_debug(settings: AppSettings, value: bool | str) -> None:
    """Apply the debug option."""
    if value is False:
        settings.definitions.append("NDEBUG")
        settings.debug = False
    elif value is True:
        settings.debug = True
    elif value == "asserts":
        # Asserts stay enabled because NDEBUG is not defined.
        settings.debug = False
    elif value == "symbols":
        settings.symbols = True
        settings.debug = True
    elif value == "sanitize":
        settings.debug = True
        settings.symbols = True
        settings.sanitize = True
        settings.cflags.append(tag(Family.GNU, "-fsanitize=address"))
        settings.ldflags.append(tag(Family.GNU, "-fsanitize=address"))
    elif value == "callgrind":
        settings.symbols = True
        settings.definitions.extend(
            ["NDEBUG", "REN_C_STDIO_OK", "INCLUDE_CALLGRIND_NATIVE"]
        )
        settings.cflags.append("-g")
        settings.debug = False
    else:
        raise ConfigurationError(f"unrecognized debug setting: {value!r}")


def optimization_level(value: bool | int | str) -> Optimization:
    """Map the optimize option to an entity optimization level."""
    if value is False or value == 0:
        return False
    if value is True:
        return True
    if value in (1, 2, 3, 4, "s"):
        return value
    raise ConfigurationError(f"unrecognized optimize setting: {value!r}")


def standard_flags(standard: str) -> list[ToolchainFlag]:
    """Compiler flags selecting a C or C++ standard."""
    if standard == "c":
        return []
    if standard in GNU_C_STANDARDS:
        return [tag(Family.GNU, f"--std={standard}")]
    if standard == "c++":
        return [tag(Family.GNU, "-x"), tag(Family.GNU, "c++"), tag(Family.MSC, "/TP")]
    if standard in CXX_STANDARDS:
        return [
            tag(Family.MSC, "/TP"),
            tag(Family.GNU, "-x"),
            tag(Family.GNU, "c++"),
            tag(Family.GNU, f"--std={standard}"),
            tag(Family.MSC, f"/std:{standard}"),
            # char signedness is unspecified; C++ builds exercise unsigned
            tag(Family.GNU, "-funsigned-char"),
            # cl never raised __cplusplus past C++98
            tag(Family.MSC, "/DCPLUSPLUS_11"),
        ]
    raise ConfigurationError(f"unrecognized standard: {standard!r}")


def is_cplusplus(standard: str) -> bool:
    return standard == "c++" or standard in CXX_STANDARDS


def rigorous_flags(
    standard: str, definitions: list[ToolchainFlag]
) -> list[ToolchainFlag]:
    """The strict warning set for a standard.

    Pedantic mode is left off for C89, where it rejects ``//`` comments.
    Casting away const is only checked for release C++ builds.
    """
    cplusplus = is_cplusplus(standard)
    flags: list[ToolchainFlag] = [tag(Family.GNU, "-Werror"), tag(Family.MSC, "/WX")]
    if cplusplus or standard not in ("c", "gnu89"):
        flags.append(tag(Family.GNU, "--pedantic"))
    flags.extend(
        [tag(Family.GNU, "-Wextra"), tag(Family.GNU, "-Wall"), tag(Family.MSC, "/Wall")]
    )
    flags.extend(tag(Family.GNU, f) for f in _RIGOROUS_GNU)
    if cplusplus and "NDEBUG" in definitions:
        flags.append(tag(Family.GNU, "-Wcast-qual"))
    else:
        flags.append(tag(Family.GNU, "-Wno-cast-qual"))
    flags.extend(
        [
            tag(Family.GNU, "-Wsign-compare"),
            tag(Family.GNU, "-Wno-conversion"),
            tag(Family.GNU, "-Wno-strict-overflow"),
        ]
    )
    flags.extend(tag(Family.MSC, f"/wd{w}") for w in _RIGOROUS_MSC_DISABLED)
    flags.append(tag(Family.MSC, "/D_WINSOCK_DEPRECATED_NO_WARNINGS"))
    return flags


def static_flags(cplusplus: bool, sanitize: bool) -> list[ToolchainFlag]:
    """Linker flags for linking the compiler runtime statically."""
    flags: list[ToolchainFlag] = [tag(Family.GNU, "-static-libgcc")]
    if cplusplus:
        flags.append(tag(Family.GNU, "-static-libstdc++"))
    if sanitize:
        flags.append(tag(Family.GNU, "-static-libasan"))
    return flags


def platform_definitions(platform: TargetPlatform) -> list[str]:
    """TO_<OS_BASE> and TO_<OS_NAME> definitions of the target."""
    return [
        f"TO_{platform.os_base.value.upper()}",
        f"TO_{platform.os_name.upper().replace('-', '_')}",
    ]


def _library(name: str) -> ExternalLibraryRef:
    if name.endswith(".a") or name.endswith(".lib"):
        return ExternalLibraryRef(output=name, static=True, by_path="/" in name)
    return ExternalLibraryRef(output=name, by_path="/" in name)


def translate_options(config: BuildConfig, platform: TargetPlatform) -> AppSettings:
    """Translate a configuration into the settings of the runtime's targets.

    The order of the resulting flags follows the options: debug, standard,
    rigorous, then the user's own flags, so that user flags come last.

    Raises:
        ConfigurationError: If an option value is not recognized.
    """
    settings = AppSettings(includes=[Path(p) for p in config.layout.includes])
    apply_debug(settings, config.debug)
    settings.optimization = optimization_level(config.optimize)

    settings.cplusplus = is_cplusplus(config.standard)
    settings.cflags.extend(standard_flags(config.standard))
    if config.rigorous:
        settings.cflags.extend(rigorous_flags(config.standard, settings.definitions))
    if config.static:
        settings.ldflags.extend(static_flags(settings.cplusplus, settings.sanitize))

    if config.with_tcc:
        tcc_root = (
            Path(config.with_tcc).parent
            if isinstance(config.with_tcc, str)
            else Path(TCC_ROOT)
        )
        settings.tcc = (
            config.with_tcc if isinstance(config.with_tcc, str) else f"{TCC_ROOT}/tcc"
        )
        settings.includes.append(Path(TCC_ROOT))
        settings.searches.append(tcc_root)
        settings.libraries.extend(
            [
                ExternalLibraryRef(
                    output=(tcc_root / "libtcc1.a").as_posix(), static=True, by_path=True
                ),
                ExternalLibraryRef(
                    output=(tcc_root / "libtcc.a").as_posix(), static=True, by_path=True
                ),
            ]
        )
        settings.definitions.append("WITH_TCC")

    if config.with_ffi:
        settings.libraries.append(
            ExternalLibraryRef(output="ffi", static=config.with_ffi == "static")
        )

    settings.definitions.extend(parse_flags(config.definitions))
    settings.includes.extend(Path(p) for p in config.includes)
    settings.cflags.extend(parse_flags(config.cflags))
    settings.libraries.extend(_library(lib) for lib in config.libraries)
    settings.ldflags.extend(parse_flags(config.ldflags))
    settings.definitions.extend(platform_definitions(platform))

    logger.debug("definitions: %s", settings.definitions)
    logger.debug("cflags: %s", [str(f) for f in settings.cflags])
    logger.debug("ldflags: %s", [str(f) for f in settings.ldflags])
    logger.debug(
        "debug: %s, optimization: %s", settings.debug, settings.optimization
    )
    return settings
