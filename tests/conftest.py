"""Shared test helpers."""

from __future__ import annotations

from typing import Sequence

import pytest

from obstatus.runner import CommandNotFoundError, CommandResult


class FakeRunner:
    """Stands in for CommandRunner: maps an argv tuple to canned output.

    A value may be a string (stdout), a CommandResult, an exception to raise,
    or a list of those consumed one per call. Unknown commands raise
    CommandNotFoundError as if the binary were missing.
    """

    def __init__(self, responses: dict[tuple[str, ...], object] | None = None) -> None:
        self.responses: dict[tuple[str, ...], object] = dict(responses or {})
        self.calls: list[tuple[str, ...]] = []

    def run(self, command: str, args: Sequence[str] = ()) -> CommandResult:
        argv = (command, *args)
        self.calls.append(argv)
        if argv not in self.responses:
            raise CommandNotFoundError(argv)
        value = self.responses[argv]
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, CommandResult):
            return value
        return CommandResult(stdout=str(value), stderr="")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
