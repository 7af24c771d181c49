"""NotesConfig: data-root resolution and derived paths.

Default layout (all relative to the data root, ``~/.notes`` or $NOTES_HOME):

    config.toml           # optional settings (see below)
    index.json            # metadata for every note
    index.lock            # flock target guarding index.json rewrites
    versions/
        <slug>/
            0000001.md    # immutable version blobs
    files/
        <slug>.md         # mutable working copies
    daemon.pid            # pid of the live watcher, if any
    daemon.log            # watcher lifecycle and error log

config.toml example:

    [daemon]
    cooldown = 30.0        # quiet seconds after the last edit before a sync pass
    poll_interval = 1.0    # mtime scan interval when inotify is unavailable
    autostart = true       # spawn the watcher from interactive commands

    [editor]
    command = "subl"       # launched on new/open/rollback when installed

Environment:
    NOTES_HOME             overrides the data root
    NOTES_DISABLE_DAEMON   disables watcher autostart (tests, tooling)
    NOTES_EDITOR           overrides [editor].command; empty disables
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from notes.errors import NoteIOError

_CONFIG_FILENAME = "config.toml"
_DEFAULT_ROOT = Path.home() / ".notes"
_NOTE_EXTENSION = ".md"

ENV_HOME = "NOTES_HOME"
ENV_DISABLE_DAEMON = "NOTES_DISABLE_DAEMON"
ENV_EDITOR = "NOTES_EDITOR"


@dataclass
class DaemonConfig:
    cooldown: float = 30.0        # debounce window, seconds
    poll_interval: float = 1.0    # polling fallback scan interval
    autostart: bool = True


@dataclass
class EditorConfig:
    command: str = "subl"         # empty = never launch an editor


@dataclass
class NotesConfig:
    """Resolved configuration for one data root."""

    root: Path
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    editor: EditorConfig = field(default_factory=EditorConfig)
    extension: str = _NOTE_EXTENSION

    @property
    def config_path(self) -> Path:
        return self.root / _CONFIG_FILENAME

    @property
    def index_path(self) -> Path:
        return self.root / "index.json"

    @property
    def index_lock_path(self) -> Path:
        return self.root / "index.lock"

    @property
    def versions_dir(self) -> Path:
        return self.root / "versions"

    @property
    def files_dir(self) -> Path:
        return self.root / "files"

    @property
    def pid_path(self) -> Path:
        return self.root / "daemon.pid"

    @property
    def log_path(self) -> Path:
        return self.root / "daemon.log"

    # ------------------------------------------------------------------
    # Per-note paths
    # ------------------------------------------------------------------

    def working_file(self, slug: str) -> Path:
        return self.files_dir / f"{slug}{self.extension}"

    def note_versions_dir(self, slug: str) -> Path:
        return self.versions_dir / slug

    def version_rel(self, slug: str, version: int) -> str:
        """Root-relative blob path, e.g. ``versions/retro/0000003.md``."""
        return f"versions/{slug}/{version:07d}{self.extension}"

    def version_path(self, rel: str) -> Path:
        return self.root / rel

    def ensure_dirs(self) -> None:
        """Create root, versions/ and files/ if they don't exist."""
        for directory in (self.root, self.versions_dir, self.files_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise NoteIOError(directory, "Failed to create directory") from exc


def default_root() -> Path:
    """$NOTES_HOME if set, else ~/.notes."""
    custom = os.environ.get(ENV_HOME)
    if custom:
        return Path(custom).expanduser()
    return _DEFAULT_ROOT


def _daemon_disabled() -> bool:
    return ENV_DISABLE_DAEMON in os.environ


def load_config(root: Path | str | None = None) -> NotesConfig:
    """Resolve the data root and read its optional config.toml."""
    root_path = Path(root).expanduser() if root else default_root()
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            with config_path.open("rb") as f:
                raw = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise NoteIOError(config_path, "Failed to read config") from exc

    daemon_section = raw.get("daemon", {})
    editor_section = raw.get("editor", {})

    editor_command = str(editor_section.get("command", "subl"))
    if ENV_EDITOR in os.environ:
        editor_command = os.environ[ENV_EDITOR]

    return NotesConfig(
        root=root_path,
        daemon=DaemonConfig(
            cooldown=float(daemon_section.get("cooldown", 30.0)),
            poll_interval=float(daemon_section.get("poll_interval", 1.0)),
            autostart=bool(daemon_section.get("autostart", True)) and not _daemon_disabled(),
        ),
        editor=EditorConfig(command=editor_command.strip()),
    )
