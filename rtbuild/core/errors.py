# SPDX-License-Identifier: MIT
"""Custom exceptions for rtbuild.

All rtbuild exceptions inherit from RtbuildError. Configuration problems
are detected before any build step runs; build failures carry the entity
name, the concrete command line and the captured toolchain output.
"""

from __future__ import annotations


class RtbuildError(Exception):
    """Base class for all rtbuild exceptions.

    Attributes:
        message: The error message.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(RtbuildError):
    """Invalid configuration.

    Raised for unknown platforms, incompatible toolchains, malformed
    extension selections, unresolved references and similar problems.
    Always fatal and surfaced before any process is spawned.
    """


class UnknownPlatform(ConfigurationError):
    """The requested OS id or OS base is not in the platform registry.

    Attributes:
        os_id: The id that was looked up.
    """

    def __init__(self, os_id: str) -> None:
        self.os_id = os_id
        super().__init__(f"unknown platform: {os_id}")


class IncompatibleToolchain(ConfigurationError):
    """The selected compiler and linker cannot be used together.

    Attributes:
        compiler: Compiler name (e.g. 'cl').
        linker: Linker name (e.g. 'ld').
    """

    def __init__(self, compiler: str, linker: str) -> None:
        self.compiler = compiler
        self.linker = linker
        super().__init__(
            f"incompatible compiler ({compiler}) and linker ({linker})"
        )


class CyclicDependency(RtbuildError):
    """Circular dependency detected in the build graph.

    Attributes:
        cycle: The names forming the cycle, first name repeated at the end.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        cycle_str = " -> ".join(cycle)
        super().__init__(f"dependency cycle: {cycle_str}")


class GenerateError(RtbuildError):
    """Error during build file generation."""


class BuildFailure(RtbuildError):
    """A build step failed.

    Attributes:
        entity: Name of the entity whose step failed.
        command: The command line that was run.
        output: Captured toolchain output (stdout and stderr).
        returncode: Process exit status, or None if it never started.
    """

    kind = "build"

    def __init__(
        self,
        entity: str,
        command: str,
        output: str = "",
        returncode: int | None = None,
    ) -> None:
        self.entity = entity
        self.command = command
        self.output = output
        self.returncode = returncode
        message = f"{self.kind} failed for {entity}: {command}"
        if returncode is not None:
            message += f" (exit status {returncode})"
        super().__init__(message)


class CompileFailure(BuildFailure):
    """A compile step failed."""

    kind = "compile"


class LinkFailure(BuildFailure):
    """A link (or archive) step failed."""

    kind = "link"


class PostBuildFailure(BuildFailure):
    """A post-build command failed."""

    kind = "post-build"


class CommandFailure(BuildFailure):
    """A command of a phony target failed."""

    kind = "command"
