"""Change watcher: debounces edits under files/ and promotes them to versions.

Designed to run as a detached background process:
    python -m notes.watcher [DATA_ROOT]

Any create/modify/move/delete of a *.md working copy marks the watcher
dirty. Once a full cooldown window (30s by default) passes with no further
events, one sync pass runs snapshot_if_changed for every note. A burst of
editor autosaves therefore becomes a single version.

Uses inotify on Linux; other platforms poll mtimes every poll_interval
seconds.
"""

from __future__ import annotations

import logging
import signal
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from notes.config import load_config
from notes.daemon import SingletonGuard
from notes.snapshot import SnapshotEngine
from notes.store import open_store

if TYPE_CHECKING:
    from notes.config import NotesConfig

logger = logging.getLogger("notes.watcher")

_LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


class EventSourceClosed(Exception):  # noqa: N818
    """Raised by EventSource.read once the source has been closed."""


class EventSource(Protocol):
    def read(self, timeout: float) -> list[Path]:
        """Block up to timeout seconds; return changed paths ([] on timeout)."""
        ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# inotify source
# ---------------------------------------------------------------------------

class InotifyEventSource:
    """Watch one directory with inotify_simple (Linux)."""

    def __init__(self, directory: Path) -> None:
        import inotify_simple  # type: ignore[import-untyped]

        self.directory = directory
        self._flags = inotify_simple.flags
        self._inotify = inotify_simple.INotify()
        mask = (
            self._flags.CLOSE_WRITE
            | self._flags.MODIFY
            | self._flags.CREATE
            | self._flags.DELETE
            | self._flags.MOVED_TO
            | self._flags.MOVED_FROM
        )
        try:
            self._inotify.add_watch(str(directory), mask)
        except OSError:
            self._inotify.close()
            raise
        self._closed = False

    def read(self, timeout: float) -> list[Path]:
        if self._closed:
            raise EventSourceClosed
        try:
            events = self._inotify.read(timeout=max(0, int(timeout * 1000)))
        except (OSError, ValueError):
            if self._closed:
                raise EventSourceClosed from None
            raise
        return [
            self.directory / event.name
            for event in events
            if event.name and not event.mask & self._flags.ISDIR
        ]

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._inotify.close()


# ---------------------------------------------------------------------------
# Polling source
# ---------------------------------------------------------------------------

class PollingEventSource:
    """mtime/size scan of one directory; reports added, changed and removed files."""

    def __init__(
        self,
        directory: Path,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.directory = directory
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._closed = False
        self._seen = self._scan()

    def _scan(self) -> dict[Path, tuple[int, int]]:
        seen: dict[Path, tuple[int, int]] = {}
        if not self.directory.is_dir():
            return seen
        for path in self.directory.iterdir():
            try:
                st = path.stat()
            except OSError:
                continue
            if path.is_file():
                seen[path] = (st.st_mtime_ns, st.st_size)
        return seen

    def read(self, timeout: float) -> list[Path]:
        deadline = self._clock() + timeout
        while True:
            if self._closed:
                raise EventSourceClosed
            current = self._scan()
            changed = [p for p, stamp in current.items() if self._seen.get(p) != stamp]
            changed += [p for p in self._seen if p not in current]
            self._seen = current
            if changed:
                return sorted(changed)
            remaining = deadline - self._clock()
            if remaining <= 0:
                return []
            self._sleep(min(self.interval, remaining))

    def close(self) -> None:
        self._closed = True


def make_event_source(cfg: NotesConfig) -> EventSource:
    """inotify on Linux, polling elsewhere or when inotify watches are exhausted."""
    if sys.platform.startswith("linux"):
        try:
            return InotifyEventSource(cfg.files_dir)
        except OSError:
            logger.warning("inotify unavailable for %s, falling back to polling", cfg.files_dir)
    return PollingEventSource(cfg.files_dir, interval=cfg.daemon.poll_interval)


# ---------------------------------------------------------------------------
# Debounce loop
# ---------------------------------------------------------------------------

class ChangeWatcher:
    """Single-threaded debounce loop over an EventSource.

    Blocks until the next event or the next wake time (last event + cooldown).
    Errors from the source or the sync callback are logged; only
    EventSourceClosed ends the loop.
    """

    def __init__(
        self,
        source: EventSource,
        on_sync: Callable[[], object],
        *,
        cooldown: float = 30.0,
        extension: str = ".md",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self.on_sync = on_sync
        self.cooldown = cooldown
        self.extension = extension.lower()
        self.clock = clock
        self.sleep = sleep
        self.dirty = False
        self.last_event: float | None = None
        self.passes = 0

    def is_relevant(self, path: Path) -> bool:
        return path.suffix.lower() == self.extension

    def next_timeout(self, now: float) -> float:
        if not self.dirty or self.last_event is None:
            return self.cooldown
        return max(0.0, self.last_event + self.cooldown - now)

    def observe(self, paths: list[Path]) -> None:
        if any(self.is_relevant(p) for p in paths):
            self.dirty = True
            self.last_event = self.clock()

    def tick(self) -> bool:
        """Run a sync pass if dirty and quiet for a full cooldown. Returns True if one ran."""
        if not self.dirty or self.last_event is None:
            return False
        if self.clock() - self.last_event < self.cooldown:
            return False
        self.passes += 1
        try:
            self.on_sync()
        except Exception:
            logger.exception("sync error")
        self.dirty = False
        return True

    def run(self) -> None:
        logger.info("watching (cooldown %.1fs)", self.cooldown)
        while True:
            timeout = self.next_timeout(self.clock())
            try:
                paths = self.source.read(timeout)
            except EventSourceClosed:
                logger.info("event source closed")
                break
            except Exception:
                logger.exception("watch error")
                self.sleep(timeout)
                paths = []
            self.observe(paths)
            self.tick()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def sync_snapshots(cfg: NotesConfig) -> list[str]:
    """One synchronization pass over every note. Returns the slugs that got a new version."""
    with open_store(cfg) as store:
        updated = SnapshotEngine(store).snapshot_all(skip_errors=True)
    if updated:
        logger.info("updated %d note(s): %s", len(updated), ", ".join(updated))
    return updated


def _startup_sync(cfg: NotesConfig) -> None:
    """Pick up edits made while no watcher was running."""
    try:
        sync_snapshots(cfg)
    except Exception:
        logger.exception("startup sync failed")


def run_daemon(cfg: NotesConfig) -> None:
    """Claim the PID marker and run the watcher until its event source closes."""
    cfg.ensure_dirs()
    logging.basicConfig(filename=str(cfg.log_path), level=logging.INFO, format=_LOG_FORMAT)

    guard = SingletonGuard(cfg.pid_path)
    pid = guard.claim()
    logger.info("daemon started (pid %d, root %s)", pid, cfg.root)

    source = make_event_source(cfg)

    def _handle_sigterm(signum: int, frame: object) -> None:  # noqa: ARG001
        logger.info("SIGTERM received, stopping")
        source.close()

    signal.signal(signal.SIGTERM, _handle_sigterm)

    _startup_sync(cfg)
    watcher = ChangeWatcher(
        source,
        lambda: sync_snapshots(cfg),
        cooldown=cfg.daemon.cooldown,
        extension=cfg.extension,
    )
    try:
        watcher.run()
    finally:
        source.close()
        guard.release(pid)
        logger.info("daemon stopped (pid %d)", pid)


def run_from_config(root: Path | None = None) -> None:
    run_daemon(load_config(root))


if __name__ == "__main__":
    root_arg = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    run_from_config(root_arg)
