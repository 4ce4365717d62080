# SPDX-License-Identifier: MIT
"""Toolchain flags and flag projection.

A flag is either a plain string, which applies to every toolchain, or a
TaggedFlag that applies only to one toolchain family. Configuration files
write tagged flags as ``<family:text>``, e.g. ``<gnu:-Wall>`` or
``<msc:/WX>``.

Projection turns a mixed list into the concrete arguments for one family:
plain flags are kept, tagged flags are kept (without the tag) when their
family matches and dropped otherwise. Relative order never changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

from rtbuild.core.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable


class Family(str, Enum):
    """Toolchain families a flag can be tagged with."""

    GNU = "gnu"
    MSC = "msc"
    TCC = "tcc"
    # llvm-link only; gnu-tagged linker flags must not reach it
    LLVM = "llvm"


@dataclass(frozen=True)
class TaggedFlag:
    """A flag that only applies to one toolchain family."""

    family: Family
    text: str

    def __str__(self) -> str:
        return f"<{self.family.value}:{self.text}>"


ToolchainFlag = Union[str, TaggedFlag]


def tag(family: Family | str, text: str) -> TaggedFlag:
    """Create a tagged flag.

    Examples:
        >>> tag("gnu", "-Wall")
        TaggedFlag(family=<Family.GNU: 'gnu'>, text='-Wall')
    """
    return TaggedFlag(_to_family(family), text)


def _to_family(family: Family | str) -> Family:
    if isinstance(family, Family):
        return family
    try:
        return Family(family)
    except ValueError:
        raise ConfigurationError(f"unknown toolchain family: {family!r}") from None


def parse_flag(spec: ToolchainFlag) -> ToolchainFlag:
    """Parse the textual form of a flag.

    ``"<gnu:-Wall>"`` becomes ``TaggedFlag(GNU, "-Wall")``; strings that do
    not start with ``<`` are returned unchanged.

    Raises:
        ConfigurationError: If a ``<...>`` flag is malformed.
    """
    if isinstance(spec, TaggedFlag):
        return spec
    if not spec.startswith("<"):
        return spec
    if not spec.endswith(">") or ":" not in spec:
        raise ConfigurationError(f"malformed flag: {spec}")
    family, _, text = spec[1:-1].partition(":")
    if not text:
        raise ConfigurationError(f"malformed flag: {spec}")
    return TaggedFlag(_to_family(family), text)


def parse_flags(specs: Iterable[ToolchainFlag]) -> tuple[ToolchainFlag, ...]:
    """Parse a list of flags, see parse_flag()."""
    return tuple(parse_flag(s) for s in specs)


def project_flag(family: Family, flag: ToolchainFlag) -> str | None:
    """Project a single flag, returning None if it does not apply."""
    if isinstance(flag, TaggedFlag):
        return flag.text if flag.family == family else None
    return flag


def project_flags(family: Family, flags: Iterable[ToolchainFlag]) -> list[str]:
    """Resolve a mixed list of flags for one toolchain family.

    Examples:
        >>> project_flags(Family.GNU, ["-O2", tag("gnu", "-Wall"), tag("msc", "/WX")])
        ['-O2', '-Wall']
    """
    result: list[str] = []
    for flag in flags:
        text = project_flag(family, flag)
        if text is not None:
            result.append(text)
    return result


# Per-source warning keywords accepted next to a source path, e.g.
# ("core/n-math.c", ["no-uninitialized"]).
WARNING_KEYWORDS: dict[str, tuple[TaggedFlag, ...]] = {
    "no-uninitialized": (
        TaggedFlag(Family.GNU, "-Wno-uninitialized"),
        TaggedFlag(Family.MSC, "/wd4701"),
        TaggedFlag(Family.MSC, "/wd4703"),
    ),
    "implicit-fallthru": (
        TaggedFlag(Family.GNU, "-Wno-unknown-warning"),
        TaggedFlag(Family.GNU, "-Wno-implicit-fallthrough"),
    ),
    "no-unused-parameter": (TaggedFlag(Family.GNU, "-Wno-unused-parameter"),),
    "no-shift-negative-value": (
        TaggedFlag(Family.GNU, "-Wno-shift-negative-value"),
    ),
    "no-make-header": (),
    "no-unreachable": (TaggedFlag(Family.MSC, "/wd4702"),),
    "no-hidden-local": (TaggedFlag(Family.MSC, "/wd4456"),),
    "no-constant-conditional": (TaggedFlag(Family.MSC, "/wd4127"),),
}


def expand_source_flags(specs: Iterable[ToolchainFlag]) -> tuple[ToolchainFlag, ...]:
    """Expand per-source warning keywords into tagged flags.

    Keywords may be written bare (``no-unreachable``) or in angle brackets
    (``<no-unreachable>``). Anything else goes through parse_flag().
    """
    result: list[ToolchainFlag] = []
    for spec in specs:
        if isinstance(spec, str):
            keyword = spec[1:-1] if spec.startswith("<") and spec.endswith(">") else spec
            if keyword in WARNING_KEYWORDS:
                result.extend(WARNING_KEYWORDS[keyword])
                continue
        result.append(parse_flag(spec))
    return tuple(result)
