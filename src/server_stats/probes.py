"""External utility probes.

Each probe runs one OS utility through a ProbeRunner and parses its text
output into a ProbeResult. Probes never raise: a missing binary, non-zero
exit or unreadable output becomes an "unavailable" result.
"""

from __future__ import annotations

import os
import pwd
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

import psutil

from server_stats.logging import get_logger
from server_stats.models import UNKNOWN_OWNER, ProbeResult

log = get_logger("probes")

BTMP_HEADER = "btmp begins"
_PERMISSION_MARKERS = ("permission denied", "operation not permitted")


class ProbeError(Exception):
    """Base class for probe failures."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class BinaryNotFound(ProbeError):
    """The utility is not installed or not on PATH."""


class NonZeroExit(ProbeError):
    """The utility ran but reported failure."""


class ParseEmpty(ProbeError):
    """The utility produced no usable output."""


class PermissionDenied(ProbeError):
    """The utility or the data it reads requires more privilege."""


@dataclass(slots=True, frozen=True)
class ProbeOutput:
    """Captured output of a finished utility."""

    stdout: str
    returncode: int
    stderr: str = ""


ProbeRunner = Callable[[str, Sequence[str]], ProbeOutput]


def run_probe(command: str, args: Sequence[str] = ()) -> ProbeOutput:
    """Run command with args and capture its output.

    Raises:
        BinaryNotFound: If the executable does not exist.
        PermissionDenied: If the executable cannot be run.
    """
    try:
        result = subprocess.run(
            [command, *args],
            capture_output=True,
            stdin=subprocess.DEVNULL,
        )
    except FileNotFoundError as exc:
        raise BinaryNotFound(f"{command} not found") from exc
    except PermissionError as exc:
        raise PermissionDenied(f"{command} not executable") from exc
    return ProbeOutput(
        stdout=result.stdout.decode(errors="replace"),
        returncode=result.returncode,
        stderr=result.stderr.decode(errors="replace"),
    )


def _invoke(runner: ProbeRunner, argv: Sequence[str]) -> ProbeOutput:
    """Run argv through runner, turning a failed exit into a ProbeError."""
    command, *args = argv
    output = runner(command, args)
    if output.returncode != 0:
        detail = output.stderr.strip().lower()
        if any(marker in detail for marker in _PERMISSION_MARKERS):
            raise PermissionDenied(f"{command}: permission denied")
        raise NonZeroExit(f"{command} exited with status {output.returncode}")
    return output


def _unavailable(name: str, exc: Exception) -> ProbeResult:
    if isinstance(exc, ProbeError):
        log.warning("probe_unavailable", probe=name, reason=exc.reason, error=type(exc).__name__)
        return ProbeResult.unavailable(exc.reason, type(exc))
    # OSError and friends from the runner itself
    log.warning("probe_failed", probe=name, error=repr(exc))
    return ProbeResult.unavailable(str(exc) or type(exc).__name__, type(exc))


def count_listening_ports(
    runner: ProbeRunner = run_probe,
    argv: Sequence[str] = ("netstat", "-tuln"),
) -> ProbeResult[int]:
    """Count socket-listing lines carrying the LISTEN marker."""
    try:
        output = _invoke(runner, argv)
        if not output.stdout.strip():
            # Socket listings always carry a header; nothing at all is suspect
            raise ParseEmpty(f"{argv[0]} produced no output")
        count = sum(1 for line in output.stdout.splitlines() if "LISTEN" in line)
    except (ProbeError, OSError) as exc:
        return _unavailable("listening_ports", exc)
    return ProbeResult.ok(count)


@dataclass(slots=True, frozen=True)
class Sessions:
    """Logged-in session lines (possibly truncated) and the full count."""

    lines: tuple[str, ...]
    total: int


def list_sessions(
    runner: ProbeRunner = run_probe,
    argv: Sequence[str] = ("who",),
    limit: int = 10,
) -> ProbeResult[Sessions]:
    """List up to limit session lines verbatim; total counts every line."""
    try:
        output = _invoke(runner, argv)
    except (ProbeError, OSError) as exc:
        return _unavailable("sessions", exc)
    lines = output.stdout.splitlines()
    return ProbeResult.ok(Sessions(lines=tuple(lines[: max(0, limit)]), total=len(lines)))


def list_failed_logins(
    runner: ProbeRunner = run_probe,
    argv: Sequence[str] = ("lastb", "-n", "5"),
    limit: int = 5,
) -> ProbeResult[tuple[str, ...]]:
    """Return recent failed-login lines without blanks or the btmp header.

    An unreadable login log is reported as PermissionDenied; reading it
    usually needs root.
    """
    try:
        output = _invoke(runner, argv)
    except NonZeroExit as exc:
        if _is_unprivileged():
            return _unavailable("failed_logins", PermissionDenied(exc.reason))
        return _unavailable("failed_logins", exc)
    except (ProbeError, OSError) as exc:
        return _unavailable("failed_logins", exc)
    lines = [
        line
        for line in output.stdout.splitlines()
        if line.strip() and not line.startswith(BTMP_HEADER)
    ]
    return ProbeResult.ok(tuple(lines[: max(0, limit)]))


def _is_unprivileged() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() != 0


def resolve_owner(pid: int) -> str:
    """Resolve the user owning pid, or "unknown".

    Takes the real uid from psutil and looks it up in the password
    database. A vanished process or an unmapped uid yields "unknown".
    """
    try:
        uid = psutil.Process(pid).uids().real
        return pwd.getpwuid(uid).pw_name
    except (psutil.Error, KeyError):
        return UNKNOWN_OWNER


def resolve_hostname(
    environ: Mapping[str, str] | None = None,
    runner: ProbeRunner = run_probe,
    env_var: str = "HOSTNAME",
    argv: Sequence[str] = ("hostname",),
) -> str:
    """Hostname from the environment, then the hostname utility."""
    env = os.environ if environ is None else environ
    name = env.get(env_var, "").strip()
    if name:
        return name
    try:
        output = _invoke(runner, argv)
    except (ProbeError, OSError) as exc:
        _unavailable("hostname", exc)
        return "unknown"
    return output.stdout.strip() or "unknown"
