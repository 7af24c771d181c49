"""Shared pytest fixtures for notes tests."""

from pathlib import Path

import pytest

from notes.config import NotesConfig, load_config
from notes.snapshot import SnapshotEngine
from notes.store import VersionStore


@pytest.fixture
def notes_home(tmp_path, monkeypatch):
    """Empty data root; NOTES_HOME points at it and the daemon/editor are disabled."""
    root = tmp_path / "notes-home"
    monkeypatch.setenv("NOTES_HOME", str(root))
    monkeypatch.setenv("NOTES_DISABLE_DAEMON", "1")
    monkeypatch.setenv("NOTES_EDITOR", "")
    return root


@pytest.fixture
def config(notes_home) -> NotesConfig:
    return load_config()


@pytest.fixture
def store(config) -> VersionStore:
    return VersionStore.load(config)


@pytest.fixture
def engine(store) -> SnapshotEngine:
    return SnapshotEngine(store)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedEventSource:
    """EventSource replaying (time, path) events against a FakeClock.

    read() returns every event due within the timeout (advancing the clock to
    the first one), or advances the clock by the full timeout and returns [].
    After the script is exhausted it allows ``idle_reads`` more timeouts and
    then reports itself closed.
    """

    def __init__(self, clock: FakeClock, events: list[tuple[float, str]], idle_reads: int = 3) -> None:
        self.clock = clock
        self.events = sorted(events)
        self.idle_reads = idle_reads
        self.timeouts: list[float] = []
        self.closed = False

    def read(self, timeout: float) -> list[Path]:
        from notes.watcher import EventSourceClosed

        self.timeouts.append(timeout)
        if self.closed:
            raise EventSourceClosed
        if self.events and self.events[0][0] <= self.clock.now + timeout:
            due = max(self.events[0][0], self.clock.now)
            self.clock.now = due
            batch = []
            while self.events and self.events[0][0] <= due:
                batch.append(Path(self.events.pop(0)[1]))
            return batch
        if not self.events:
            if self.idle_reads <= 0:
                self.closed = True
                raise EventSourceClosed
            self.idle_reads -= 1
        self.clock.advance(timeout)
        return []

    def close(self) -> None:
        self.closed = True


class FakeProbe:
    """ProcessProbe backed by an explicit set of live pids."""

    def __init__(self, alive: set[int] | None = None) -> None:
        self.alive = set(alive or ())
        self.calls: list[int] = []

    def is_alive(self, pid: int) -> bool:
        self.calls.append(pid)
        return pid in self.alive


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
