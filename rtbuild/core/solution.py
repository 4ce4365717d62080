# SPDX-License-Identifier: MIT
"""Solution: the top-level set of named build targets.

A Solution is an arena of targets keyed by name. Dependencies written as
name handles are resolved here, and the target-level build order is a
topological sort over the names.
"""

from __future__ import annotations

import logging
import os
import re
from typing import TYPE_CHECKING

from rtbuild.core.entity import (
    LinkedEntity,
    ObjectLibrary,
    PhonyTarget,
    Variable,
)
from rtbuild.core.errors import ConfigurationError, CyclicDependency

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from rtbuild.core.entity import DependencyRef, Entity

logger = logging.getLogger(__name__)

_VARIABLE_RE = re.compile(r"\$\(([A-Za-z0-9_]+)\)")
_MAX_REIFY_DEPTH = 16


class Solution:
    """An ordered set of named targets forming a DAG.

    Example:
        solution = Solution("app", [core, app, clean])
        for name in solution.build_order():
            ...
    """

    def __init__(self, name: str, targets: Iterable[Entity] = ()) -> None:
        self.name = name
        self._targets: dict[str, Entity] = {}
        for target in targets:
            self.add(target)

    def add(self, target: Entity) -> Entity:
        """Add a target.

        Raises:
            ConfigurationError: If a target with the same name exists.
        """
        if not target.name:
            raise ConfigurationError(f"{self.name}: target without a name")
        if target.name in self._targets:
            raise ConfigurationError(
                f"{self.name}: duplicate target name '{target.name}'"
            )
        self._targets[target.name] = target
        return target

    @property
    def targets(self) -> list[Entity]:
        """All entries, variables included, in insertion order."""
        return list(self._targets.values())

    @property
    def variables(self) -> list[Variable]:
        return [t for t in self._targets.values() if isinstance(t, Variable)]

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._targets.values())

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def __repr__(self) -> str:
        return f"Solution({self.name!r}, {len(self._targets)} targets)"

    def resolve(self, handle: str) -> Entity:
        """Return the target named by a handle.

        Raises:
            ConfigurationError: If no target has that name.
        """
        try:
            return self._targets[handle]
        except KeyError:
            raise ConfigurationError(
                f"{self.name}: unresolved reference '{handle}'"
            ) from None

    def target_names(self) -> list[str]:
        """Names of buildable targets (everything except variables)."""
        return [
            name for name, t in self._targets.items() if not isinstance(t, Variable)
        ]

    def target_name_of(self, ref: DependencyRef) -> str | None:
        """The target name a reference stands for, or None if it is not a target."""
        if isinstance(ref, str):
            self.resolve(ref)
            return ref
        name = getattr(ref, "name", "")
        if name and self._targets.get(name) == ref:
            return name
        return None

    def dependencies_of(self, name: str) -> list[str]:
        """Names of the targets a target depends on.

        Direct references to other targets count, whether written as a
        handle or as the entity itself. Object libraries that are not
        targets themselves are looked through, since their members may
        name targets.
        """
        target = self.resolve(name)
        deps: list[str] = []

        def collect(refs: Iterable[DependencyRef]) -> None:
            for ref in refs:
                dep_name = self.target_name_of(ref)
                if dep_name is not None:
                    if dep_name == name:
                        raise CyclicDependency([name, name])
                    if (
                        not isinstance(self._targets[dep_name], Variable)
                        and dep_name not in deps
                    ):
                        deps.append(dep_name)
                elif isinstance(ref, ObjectLibrary):
                    collect(ref.depends)

        if isinstance(target, (ObjectLibrary, LinkedEntity, PhonyTarget)):
            collect(target.depends)
        return deps

    def variable_values(self, environ: Mapping[str, str] | None = None) -> dict[str, str]:
        """Values of the solution's variables.

        A default only applies when environ does not define the variable.
        """
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for var in self.variables:
            if var.value is not None:
                values[var.name] = var.value
            else:
                values[var.name] = env.get(var.name, str(var.default))
        return values

    def reify(self, text: str, environ: Mapping[str, str] | None = None) -> str:
        """Substitute $(NAME) references in a command line.

        Substitution repeats until no reference is left, so variable
        values may refer to other variables. Names that are not solution
        variables come from environ, or expand to nothing.

        Raises:
            ConfigurationError: If substitution does not terminate.
        """
        env = os.environ if environ is None else environ
        values = self.variable_values(env)

        def lookup(match: re.Match[str]) -> str:
            name = match.group(1)
            if name in values:
                return values[name]
            return env.get(name, "")

        for _ in range(_MAX_REIFY_DEPTH):
            new_text = _VARIABLE_RE.sub(lookup, text)
            if new_text == text:
                return text
            text = new_text
        raise ConfigurationError(f"{self.name}: recursive variable in '{text}'")

    def build_order(self) -> list[str]:
        """Target names in dependency order.

        Targets keep their insertion order wherever dependencies allow.

        Raises:
            CyclicDependency: If the targets form a cycle.
        """
        order: list[str] = []
        done: set[str] = set()
        path: list[str] = []

        def visit(name: str) -> None:
            if name in done:
                return
            if name in path:
                start = path.index(name)
                raise CyclicDependency(path[start:] + [name])
            path.append(name)
            for dep in self.dependencies_of(name):
                visit(dep)
            path.pop()
            done.add(name)
            order.append(name)

        for name in self.target_names():
            visit(name)
        logger.debug("Build order: %s", ", ".join(order))
        return order
