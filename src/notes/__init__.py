"""File-backed version history for plain-text notes.

Layout (under ~/.notes or $NOTES_HOME):
    index.json                      # metadata for all notes (pretty-printed JSON)
    versions/<slug>/0000001.md      # immutable version blobs
    files/<slug>.md                 # working copies, edited directly
    daemon.pid / daemon.log         # background watcher marker and log

A note's working copy is never history by itself. SnapshotEngine promotes
it to a new version when its SHA-256 differs from the latest version; the
watcher does this automatically after edits go quiet for a cooldown window.
"""

from notes.config import NotesConfig, load_config
from notes.models import NoteRecord, VersionRecord
from notes.snapshot import SnapshotEngine
from notes.store import VersionStore, open_store
from notes.working import WorkingCopyManager

__all__ = [
    "NoteRecord",
    "NotesConfig",
    "SnapshotEngine",
    "VersionRecord",
    "VersionStore",
    "WorkingCopyManager",
    "load_config",
    "open_store",
]
