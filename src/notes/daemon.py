"""Watcher process management: one watcher per data root, tracked by a PID file.

The PID file is advisory. A live pid means a watcher is running; a pid that
no longer exists is a stale marker and is removed before a new watcher is
spawned. Two callers that both see "no marker" at the same moment can
still each spawn a watcher.
"""

from __future__ import annotations

import contextlib
import os
import signal
import subprocess
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pathlib import Path

    from notes.config import NotesConfig

_WATCHER_MODULE = "notes.watcher"


# ---------------------------------------------------------------------------
# Liveness probes
# ---------------------------------------------------------------------------

class ProcessProbe(Protocol):
    def is_alive(self, pid: int) -> bool: ...


class OsProcessProbe:
    """Signal 0: existence check only, nothing is delivered."""

    def is_alive(self, pid: int) -> bool:
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            # exists, owned by another user
            return True
        return True


class AssumeAliveProbe:
    """For platforms without a cheap liveness check: any marker counts as live."""

    def is_alive(self, pid: int) -> bool:  # noqa: ARG002
        return True


def default_probe() -> ProcessProbe:
    if os.name == "posix":
        return OsProcessProbe()
    return AssumeAliveProbe()


# ---------------------------------------------------------------------------
# PID marker
# ---------------------------------------------------------------------------

class SingletonGuard:
    """Reads, validates and writes the watcher's PID marker file."""

    def __init__(self, pid_path: Path, probe: ProcessProbe | None = None) -> None:
        self.pid_path = pid_path
        self.probe = probe or default_probe()

    def read_pid(self) -> int | None:
        """Pid recorded in the marker, or None if absent or unparsable."""
        try:
            pid = int(self.pid_path.read_text().strip())
        except (OSError, ValueError):
            return None
        return pid if pid > 0 else None

    def running_pid(self) -> int | None:
        """Pid of the live watcher, or None. Stale markers are removed."""
        if not self.pid_path.exists():
            return None
        pid = self.read_pid()
        if pid is not None and self.probe.is_alive(pid):
            return pid
        self.clear()
        return None

    def claim(self, pid: int | None = None) -> int:
        """(Re)write the marker with pid (default: this process)."""
        pid = pid if pid is not None else os.getpid()
        self.pid_path.parent.mkdir(parents=True, exist_ok=True)
        self.pid_path.write_text(str(pid))
        return pid

    def release(self, pid: int | None = None) -> None:
        """Remove the marker if it still names pid (default: this process)."""
        pid = pid if pid is not None else os.getpid()
        if self.read_pid() == pid:
            self.clear()

    def clear(self) -> None:
        with contextlib.suppress(OSError):
            self.pid_path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Spawning
# ---------------------------------------------------------------------------

def _spawn_watcher(cfg: NotesConfig) -> int:
    """Start the watcher as a detached background process. Returns its pid."""
    cfg.log_path.parent.mkdir(parents=True, exist_ok=True)
    env = {**os.environ, "NOTES_HOME": str(cfg.root)}
    with cfg.log_path.open("a") as log:
        proc = subprocess.Popen(
            [sys.executable, "-m", _WATCHER_MODULE, str(cfg.root)],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=log,
            env=env,
            start_new_session=True,
        )
    return proc.pid


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def ensure_watcher(
    cfg: NotesConfig,
    guard: SingletonGuard | None = None,
    spawn: Callable[[NotesConfig], int] | None = None,
) -> str:
    """Start the watcher unless one is already alive. Returns a status for display."""
    if not cfg.daemon.autostart:
        return "disabled"

    guard = guard or SingletonGuard(cfg.pid_path)
    pid = guard.running_pid()
    if pid is not None:
        return f"already running (pid {pid})"

    pid = (spawn or _spawn_watcher)(cfg)
    guard.claim(pid)
    return f"started (pid {pid})"


def watcher_status(cfg: NotesConfig, guard: SingletonGuard | None = None) -> str:
    guard = guard or SingletonGuard(cfg.pid_path)
    pid = guard.running_pid()
    if pid is not None:
        return f"running (pid {pid})"
    return "stopped"


def stop_watcher(cfg: NotesConfig, guard: SingletonGuard | None = None) -> str:
    guard = guard or SingletonGuard(cfg.pid_path)
    pid = guard.running_pid()
    if pid is None:
        return "not running"
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        guard.clear()
        return "not running"
    return f"stopped (pid {pid})"
