"""External command execution for obstatus.

Every metric source, the log reader and the system-info reader go through a
``CommandRunner`` instance that is passed in explicitly, so tests can swap
in a fake that returns canned output.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Iterator, Sequence

log = logging.getLogger(__name__)


# ── Errors ─────────────────────────────────────────────────────────────────


class ObstatusError(Exception):
    """Base class for obstatus errors."""


class CommandError(ObstatusError):
    """The command could not be run at all (not found, not executable, timed out)."""

    def __init__(self, argv: Sequence[str], reason: str) -> None:
        self.argv = list(argv)
        self.reason = reason
        super().__init__(f"{' '.join(self.argv)}: {reason}")


class CommandNotFoundError(CommandError):
    """The executable does not exist on this system."""

    def __init__(self, argv: Sequence[str]) -> None:
        super().__init__(argv, "command not found")


class ParseError(ObstatusError, ValueError):
    """Command output did not have the expected layout."""


# ── Runner ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CommandResult:
    """Captured output of one command.

    Unpacks as ``stdout, stderr`` so callers that only care about the two
    streams can write ``out, err = runner.run(...)``.
    """

    stdout: str
    stderr: str
    returncode: int = 0

    def __iter__(self) -> Iterator[str]:
        yield self.stdout
        yield self.stderr


class CommandRunner:
    """Runs a program to completion and captures stdout and stderr as text.

    Bytes that do not decode are replaced rather than raised, so odd output
    from a tool shows up as a parse failure of that one source.

    A non-zero exit status or output on stderr is *not* an error here: tools
    such as ``journalctl`` report permission problems on stderr while still
    printing partial output, so callers inspect the result themselves.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout if timeout else None

    def run(self, command: str, args: Sequence[str] = ()) -> CommandResult:
        argv = [command, *args]
        log.debug("running %s", argv)
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise CommandNotFoundError(argv) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(argv, f"timed out after {self.timeout}s") from e
        except OSError as e:
            raise CommandError(argv, e.strerror or str(e)) from e

        return CommandResult(
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            returncode=proc.returncode,
        )
