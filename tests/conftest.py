# SPDX-License-Identifier: MIT
"""Shared fixtures for rtbuild tests."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator

import pytest

from rtbuild.core.commands import Command, CommandResult
from rtbuild.core.platform import _reset_target_platform


class FakeRunner:
    """CommandRunner that records commands instead of spawning processes.

    A command fails when ``fail`` returns True for it.
    """

    def __init__(self, fail: Callable[[Command], bool] | None = None) -> None:
        self.commands: list[Command] = []
        self.fail = fail
        self._lock = threading.Lock()

    def run(self, command: Command) -> CommandResult:
        with self._lock:
            self.commands.append(command)
        if self.fail is not None and self.fail(command):
            return CommandResult(returncode=1, output="error: failed\n")
        return CommandResult(returncode=0)

    @property
    def lines(self) -> list[str]:
        return [c.to_shell() for c in self.commands]


@pytest.fixture(autouse=True)
def reset_platform() -> Iterator[None]:
    """Each test starts without an active target platform."""
    _reset_target_platform()
    yield
    _reset_target_platform()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()
