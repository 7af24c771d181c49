"""SnapshotEngine: promote changed working copies into immutable versions.

History is append-only. A rollback copies the target version forward as a
new latest version; nothing is rewound or pruned.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notes.errors import InvalidOperationError, NoteNotFoundError, NotesError, VersionNotFoundError
from notes.models import hash_bytes

if TYPE_CHECKING:
    from pathlib import Path

    from notes.store import VersionStore

logger = logging.getLogger("notes.snapshot")


class SnapshotEngine:
    """Decides when a working copy warrants a new version, and records it."""

    def __init__(self, store: VersionStore) -> None:
        self.store = store
        self.working = store.working

    def snapshot_if_changed(self, slug: str) -> bool:
        """Record the working copy as a new version if it differs from the last one.

        Compares against the last VersionRecord's hash, not the cached
        working_hash. Returns True when a version was appended.
        """
        note = self.store.get(slug)
        if note is None:
            msg = f"Note not found: {slug}"
            raise NoteNotFoundError(msg)

        self.working.ensure_materialized(note)
        content = self.working.read(slug)
        digest = hash_bytes(content)

        last = note.latest
        if last is not None and last.hash == digest:
            if note.working_hash != digest:
                note.working_hash = digest
                self.store.mark_dirty(slug)
            return False

        record = self.store.append_version(slug, content)
        logger.debug("snapshot %s -> v%d", slug, record.version)
        return True

    def snapshot_all(self, *, skip_errors: bool = False) -> list[str]:
        """Run snapshot_if_changed for every note. Returns slugs that changed.

        With skip_errors, a note that fails is logged and skipped so one bad
        note cannot stop the pass.
        """
        updated: list[str] = []
        for slug in self.store.slugs():
            try:
                if self.snapshot_if_changed(slug):
                    updated.append(slug)
            except NotesError:
                if not skip_errors:
                    raise
                logger.exception("snapshot failed: %s", slug)
        return updated

    def open_note(self, identifier: str) -> Path:
        """Resolve identifier, record pending edits, return the working-copy path."""
        note = self.store.require(identifier)
        self.snapshot_if_changed(note.slug)
        return self.working.path(note.slug)

    def rollback(self, identifier: str, target_version: int | None = None) -> Path:
        """Copy an earlier version forward as the new latest and restore the working copy.

        target_version defaults to current_version - 1.
        """
        note = self.store.require(identifier)
        self.snapshot_if_changed(note.slug)

        desired = target_version if target_version is not None else note.current_version - 1
        if desired < 1 or not note.versions:
            msg = "No previous version to roll back to"
            raise InvalidOperationError(msg)

        target = note.find_version(desired)
        if target is None:
            msg = f"Version {desired} not found for {note.slug}"
            raise VersionNotFoundError(msg)

        content = self.store.read_version(target)
        record = self.store.append_version(note.slug, content)
        logger.debug("rollback %s: v%d copied to v%d", note.slug, target.version, record.version)
        return self.working.write(note.slug, content)
