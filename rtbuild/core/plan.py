# SPDX-License-Identifier: MIT
"""Dependency flattener.

flatten() expands an entity's nested ``depends`` into a Plan: the compile
steps in first-discovery order, the output directories they need, and a
single link step for linked entities. A shared object library contributes
its objects once per Plan no matter how many paths reach it, and nothing
outside the ``depends`` closure is ever pulled in.

Compile settings are inherited from the immediate parent only: an object
directly under an application gets the application's settings, an object
inside an object library gets the library's. Includes and definitions are
the object's own followed by the parent's; cflags are the parent's
followed by the object's own, so per-file flags win. Optimization and
debug set on the object override the parent's.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Union

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
    entity_kind,
)
from rtbuild.core.errors import ConfigurationError, CyclicDependency

if TYPE_CHECKING:
    from rtbuild.core.commands import PostBuildCommand
    from rtbuild.core.entity import (
        BuildEntity,
        Debug,
        DependencyRef,
        Entity,
        Optimization,
        PhonyCommand,
    )
    from rtbuild.core.flags import ToolchainFlag
    from rtbuild.core.solution import Solution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileSettings:
    """Effective settings of one compile step."""

    includes: tuple[Path, ...] = ()
    definitions: tuple[ToolchainFlag, ...] = ()
    cflags: tuple[ToolchainFlag, ...] = ()
    optimization: Optimization = None
    debug: Debug = None

    @classmethod
    def merge(cls, own: BuildEntity, parent: BuildEntity | None) -> CompileSettings:
        """Combine an entity's settings with its immediate parent's."""
        if parent is None:
            return cls(
                includes=own.includes,
                definitions=own.definitions,
                cflags=own.cflags,
                optimization=own.optimization,
                debug=own.debug,
            )
        return cls(
            includes=own.includes + parent.includes,
            definitions=own.definitions + parent.definitions,
            cflags=parent.cflags + own.cflags,
            optimization=(
                own.optimization if own.optimization is not None else parent.optimization
            ),
            debug=own.debug if own.debug is not None else parent.debug,
        )


@dataclass(frozen=True)
class CompileStep:
    """Compile one source into one object.

    Attributes:
        target: Name of the entity the Plan was made for.
        source: Source file.
        output: Object file (or preprocessed output).
        settings: Effective compile settings.
        pic: Compile position independent code.
        preprocess: Only run the preprocessor.
    """

    target: str
    source: Path
    output: Path
    settings: CompileSettings = field(default_factory=CompileSettings)
    pic: bool = False
    preprocess: bool = False


LinkInput = Union[Path, ExternalLibraryRef, LinkedEntity]


@dataclass(frozen=True)
class LinkStep:
    """Link (or archive) the compiled objects of a linked entity.

    Attributes:
        target: Name of the linked entity.
        kind: 'application', 'dynamic-library' or 'static-library'.
        output: The produced file.
        inputs: Object paths, external libraries and linked entities, in
            first-discovery order.
        searches: Library search directories.
        ldflags: Linker flags.
    """

    target: str
    kind: str
    output: Path
    inputs: tuple[LinkInput, ...] = ()
    searches: tuple[Path, ...] = ()
    ldflags: tuple[ToolchainFlag, ...] = ()

    @property
    def objects(self) -> list[Path]:
        return [i for i in self.inputs if isinstance(i, Path)]

    @property
    def libraries(self) -> list[ExternalLibraryRef]:
        return [i for i in self.inputs if isinstance(i, ExternalLibraryRef)]

    @property
    def dynamic(self) -> bool:
        return self.kind == "dynamic-library"


@dataclass
class Plan:
    """Ready-to-run actions derived from one entity.

    Attributes:
        target: Name of the entity.
        compile_steps: Compile steps, deduplicated by output path.
        dirs: Output directories, parents before children.
        link_step: The link step, for linked entities.
        commands: Commands of a phony target.
        post_build: Post-build commands of a linked entity.
        target_depends: Names of targets that must be complete first.
    """

    target: str
    compile_steps: list[CompileStep] = field(default_factory=list)
    dirs: list[Path] = field(default_factory=list)
    link_step: LinkStep | None = None
    commands: list[PhonyCommand] = field(default_factory=list)
    post_build: list[PostBuildCommand] = field(default_factory=list)
    target_depends: list[str] = field(default_factory=list)

    @property
    def outputs(self) -> list[Path]:
        """Object outputs in compile order."""
        return [step.output for step in self.compile_steps]


def _resolve(ref: DependencyRef, solution: Solution | None, owner: str) -> Entity:
    if isinstance(ref, str):
        if solution is None:
            raise ConfigurationError(
                f"{owner}: cannot resolve '{ref}' without a solution"
            )
        return solution.resolve(ref)
    return ref


def _node_key(entity: Entity) -> tuple[str, object]:
    """Identity of a node in the dependency graph.

    Files are keyed by output path and external libraries by reference.
    Everything else has no output and is keyed by object identity; names
    of object libraries may be empty or repeated.
    """
    if isinstance(entity, (ObjectFile, LinkedEntity)):
        return ("file", entity.output.as_posix())
    if isinstance(entity, ExternalLibraryRef):
        return ("external", entity.output)
    return (entity_kind(entity), id(entity))


def _children(entity: Entity) -> tuple[DependencyRef, ...]:
    if isinstance(entity, (ObjectLibrary, LinkedEntity, PhonyTarget)):
        return entity.depends
    return ()


def check_cycles(entity: Entity, solution: Solution | None = None) -> None:
    """Raise CyclicDependency if the closure of entity contains a cycle.

    Walks every ``depends`` edge, including those into linked entities and
    through name handles.
    """
    done: set[tuple[str, object]] = set()
    stack: list[tuple[tuple[str, object], str]] = []
    on_stack: set[tuple[str, object]] = set()

    def visit(node: Entity) -> None:
        key = _node_key(node)
        if key in on_stack:
            names = [name for k, name in stack]
            start = [k for k, _ in stack].index(key)
            raise CyclicDependency(names[start:] + [node.name])
        if key in done:
            return
        stack.append((key, node.name))
        on_stack.add(key)
        for ref in _children(node):
            visit(_resolve(ref, solution, node.name))
        on_stack.discard(key)
        stack.pop()
        done.add(key)

    visit(entity)


def _sorted_dirs(paths: list[Path]) -> list[Path]:
    dirs = {p.parent for p in paths if p.parent != Path(".")}
    return sorted(dirs, key=lambda d: d.parts)


class _Flattener:
    def __init__(self, root: Entity, solution: Solution | None) -> None:
        self.root = root
        self.solution = solution
        self.pic = isinstance(root, DynamicLibrary)
        self.visited: set[tuple[str, object]] = set()
        self.steps: list[CompileStep] = []
        self.inputs: list[LinkInput] = []
        self.target_depends: list[str] = []

    def add_target_depend(self, name: str) -> None:
        if name not in self.target_depends:
            self.target_depends.append(name)

    def walk(self, parent: BuildEntity, refs: tuple[DependencyRef, ...]) -> None:
        for ref in refs:
            entity = _resolve(ref, self.solution, parent.name)
            if isinstance(ref, str) and not isinstance(entity, Variable):
                self.add_target_depend(ref)
            key = _node_key(entity)
            if key in self.visited:
                continue
            self.visited.add(key)
            self.visit(parent, entity)

    def visit(self, parent: BuildEntity, entity: Entity) -> None:
        if isinstance(entity, ObjectFile):
            self.steps.append(
                CompileStep(
                    target=self.root.name,
                    source=entity.source,
                    output=entity.output,
                    settings=CompileSettings.merge(entity, parent),
                    pic=self.pic,
                )
            )
            self.inputs.append(entity.output)
        elif isinstance(entity, ObjectLibrary):
            self.walk(entity, entity.depends)
        elif isinstance(entity, ExternalLibraryRef):
            if isinstance(parent, ObjectLibrary):
                raise ConfigurationError(
                    f"{parent.name}: object library cannot depend on library {entity.name}"
                )
            self.inputs.append(entity)
        elif isinstance(entity, LinkedEntity):
            if isinstance(parent, ObjectLibrary):
                raise ConfigurationError(
                    f"{parent.name}: object library cannot depend on {entity.name}"
                )
            # Linked dependencies are built by their own plan.
            self.inputs.append(entity)
            self.add_target_depend(entity.name)
        elif isinstance(entity, PhonyTarget):
            self.add_target_depend(entity.name)
        elif isinstance(entity, Variable):
            pass
        else:
            raise ConfigurationError(f"{parent.name}: unsupported dependency {entity!r}")


def flatten(entity: Entity, solution: Solution | None = None) -> Plan:
    """Derive the Plan for an entity.

    Args:
        entity: The entity to flatten.
        solution: Resolves name handles in ``depends``.

    Returns:
        A new Plan; the entity graph is not modified, so flattening the
        same entity twice yields equal plans.

    Raises:
        CyclicDependency: If the dependency closure contains a cycle.
        ConfigurationError: If a handle cannot be resolved or a dependency
            has an unsupported kind.
    """
    check_cycles(entity, solution)

    if isinstance(entity, (Variable, ExternalLibraryRef)):
        return Plan(target=entity.name)

    if isinstance(entity, PhonyTarget):
        plan = Plan(target=entity.name, commands=list(entity.commands))
        for ref in entity.depends:
            dep = _resolve(ref, solution, entity.name)
            if not isinstance(dep, Variable) and dep.name not in plan.target_depends:
                plan.target_depends.append(dep.name)
        return plan

    if isinstance(entity, ObjectFile):
        step = CompileStep(
            target=entity.name,
            source=entity.source,
            output=entity.output,
            settings=CompileSettings.merge(entity, None),
        )
        return Plan(
            target=entity.name,
            compile_steps=[step],
            dirs=_sorted_dirs([entity.output]),
        )

    flattener = _Flattener(entity, solution)
    flattener.walk(entity, entity.depends)

    plan = Plan(
        target=entity.name,
        compile_steps=flattener.steps,
        target_depends=flattener.target_depends,
    )
    outputs = [step.output for step in flattener.steps]
    if isinstance(entity, LinkedEntity):
        inputs = list(flattener.inputs)
        for lib in entity.libraries:
            if lib not in inputs:
                inputs.append(lib)
        plan.link_step = LinkStep(
            target=entity.name,
            kind=link_kind(entity),
            output=entity.output,
            inputs=tuple(inputs),
            searches=entity.searches,
            ldflags=entity.ldflags,
        )
        plan.post_build = list(entity.post_build)
        outputs.append(entity.output)
    plan.dirs = _sorted_dirs(outputs)
    logger.debug(
        "Flattened %s: %d compile steps, %d dirs",
        entity.name,
        len(plan.compile_steps),
        len(plan.dirs),
    )
    return plan


def link_kind(entity: LinkedEntity) -> str:
    if isinstance(entity, Application):
        return "application"
    if isinstance(entity, DynamicLibrary):
        return "dynamic-library"
    if isinstance(entity, StaticLibrary):
        return "static-library"
    raise ConfigurationError(f"{entity.name}: not a linkable entity")
