"""VersionStore: index.json metadata plus immutable version blobs.

Usage:
    with open_store(cfg) as store:
        note = store.create("Retro")
        store.append_version(note.slug, b"v2")

Every session ends with a full rewrite of index.json. The rewrite happens
under flock(LOCK_EX) on index.lock: the on-disk index is re-read, the notes
this session created, mutated or deleted are applied on top, and the result
replaces index.json via rename. Notes the session never touched keep
whatever another process last wrote for them. Two sessions mutating the
same note still race; the later save wins for that note.
"""

from __future__ import annotations

import fcntl
import json
import shutil
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from notes.errors import AmbiguousNoteError, NoteIOError, NoteNotFoundError, NotesError
from notes.models import NoteRecord, VersionRecord, default_title, hash_bytes, slugify, utc_now
from notes.working import WorkingCopyManager

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from notes.config import NotesConfig


# ---------------------------------------------------------------------------
# index.json I/O
# ---------------------------------------------------------------------------

@contextmanager
def _index_lock(cfg: NotesConfig, operation: int) -> Iterator[None]:
    path = cfg.index_lock_path
    try:
        f = path.open("a")
    except OSError as exc:
        raise NoteIOError(path, "Failed to open lock file") from exc
    with f:
        fcntl.flock(f, operation)
        try:
            yield
        finally:
            fcntl.flock(f, fcntl.LOCK_UN)


def _read_index(path: Path) -> dict[str, NoteRecord]:
    if not path.exists():
        return {}
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise NoteIOError(path, "Failed to read") from exc
    if not raw.strip():
        return {}
    try:
        data: dict[str, Any] = json.loads(raw)
        return {
            slug: NoteRecord.from_dict(entry)
            for slug, entry in data.get("notes", {}).items()
        }
    except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as exc:
        raise NoteIOError(path, "Failed to parse") from exc


def _write_index(path: Path, notes: dict[str, NoteRecord]) -> None:
    payload = {"notes": {slug: notes[slug].to_dict() for slug in sorted(notes)}}
    tmp = path.with_suffix(".json.tmp")
    try:
        tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        tmp.replace(path)
    except OSError as exc:
        raise NoteIOError(path, "Failed to write") from exc


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class VersionStore:
    """In-memory view of index.json for one load/mutate/save cycle."""

    def __init__(self, cfg: NotesConfig, notes: dict[str, NoteRecord] | None = None) -> None:
        self.cfg = cfg
        self.working = WorkingCopyManager(cfg)
        self._notes: dict[str, NoteRecord] = dict(notes or {})
        self._dirty: set[str] = set()
        self._deleted: set[str] = set()

    @classmethod
    def load(cls, cfg: NotesConfig) -> VersionStore:
        """Read the whole index (an empty store if index.json is absent)."""
        cfg.ensure_dirs()
        with _index_lock(cfg, fcntl.LOCK_SH):
            notes = _read_index(cfg.index_path)
        return cls(cfg, notes)

    def save(self) -> None:
        """Rewrite index.json with this session's changes merged over the on-disk state."""
        self.cfg.ensure_dirs()
        with _index_lock(self.cfg, fcntl.LOCK_EX):
            merged = _read_index(self.cfg.index_path)
            for slug in self._deleted:
                merged.pop(slug, None)
            for slug in self._dirty:
                if slug in self._notes:
                    merged[slug] = self._notes[slug]
            _write_index(self.cfg.index_path, merged)
        self._notes = merged
        self._dirty.clear()
        self._deleted.clear()

    def mark_dirty(self, slug: str) -> None:
        self._dirty.add(slug)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def __contains__(self, slug: object) -> bool:
        return slug in self._notes

    def __len__(self) -> int:
        return len(self._notes)

    def get(self, slug: str) -> NoteRecord | None:
        return self._notes.get(slug)

    def slugs(self) -> list[str]:
        return sorted(self._notes)

    def notes(self) -> list[NoteRecord]:
        """All notes ordered by title (case-insensitive)."""
        return sorted(self._notes.values(), key=lambda n: (n.title.lower(), n.slug))

    def resolve(self, identifier: str) -> str | None:
        """Exact slug, then case-insensitive title, then case-insensitive slug."""
        if identifier in self._notes:
            return identifier
        lowered = identifier.lower()
        ordered = [self._notes[slug] for slug in sorted(self._notes)]
        for note in ordered:
            if note.title.lower() == lowered:
                return note.slug
        for note in ordered:
            if note.slug.lower() == lowered:
                return note.slug
        return None

    def require(self, identifier: str) -> NoteRecord:
        slug = self.resolve(identifier)
        if slug is None:
            msg = f"Note not found: {identifier}"
            raise NoteNotFoundError(msg)
        return self._notes[slug]

    def read_version(self, record: VersionRecord) -> bytes:
        path = self.cfg.version_path(record.path)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise NoteIOError(path, "Failed to read version") from exc

    def search(self, query: str) -> list[NoteRecord]:
        """Notes whose current version contains query (case-insensitive)."""
        needle = query.lower()
        matches = []
        for note in self.notes():
            try:
                content = self.read_version(note.current_record()).decode("utf-8", errors="replace")
            except NotesError:
                content = ""
            if needle in content.lower():
                matches.append(note)
        return matches

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def _unique_slug(self, title: str) -> str:
        base = slugify(title)
        slug = base
        counter = 1
        while slug in self._notes or self.cfg.note_versions_dir(slug).exists():
            counter += 1
            slug = f"{base}-{counter}"
        return slug

    def _write_blob(self, rel: str, data: bytes, *, indexed: bool = True) -> None:
        """Create a version blob. Indexed blobs are never overwritten with different content.

        A blob the index does not record (indexed=False) is a leftover from a
        session that failed before saving; it is replaced atomically.
        """
        path = self.cfg.version_path(rel)
        if not indexed:
            tmp = path.with_name(path.name + ".tmp")
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_bytes(data)
                tmp.replace(path)
            except OSError as exc:
                raise NoteIOError(path, "Failed to write version") from exc
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("xb") as f:
                f.write(data)
        except FileExistsError as exc:
            try:
                existing = path.read_bytes()
            except OSError as read_exc:
                raise NoteIOError(path, "Failed to read version") from read_exc
            if existing != data:
                raise NoteIOError(path, "Version blob already exists with different content") from exc
        except OSError as exc:
            raise NoteIOError(path, "Failed to write version") from exc

    def create(self, title: str | None = None) -> NoteRecord:
        """Create a note with an empty version 1 and an empty working copy."""
        now_dt = datetime.now(UTC)
        title = (title or "").strip() or default_title(now_dt)
        now = now_dt.isoformat()
        slug = self._unique_slug(title)

        empty_hash = hash_bytes(b"")
        rel = self.cfg.version_rel(slug, 1)
        self._write_blob(rel, b"")
        self.working.write(slug, b"")

        note = NoteRecord(
            slug=slug,
            title=title,
            created_at=now,
            updated_at=now,
            current_version=1,
            versions=[VersionRecord(version=1, path=rel, hash=empty_hash, created_at=now)],
            working_hash=empty_hash,
        )
        self._notes[slug] = note
        self._dirty.add(slug)
        self._deleted.discard(slug)
        return note

    def append_version(self, slug: str, data: bytes) -> VersionRecord:
        """Record data as version current_version + 1 and make it current."""
        note = self._notes.get(slug)
        if note is None:
            msg = f"Note not found: {slug}"
            raise NoteNotFoundError(msg)

        new_version = note.current_version + 1
        rel = self.cfg.version_rel(slug, new_version)
        digest = hash_bytes(data)
        self._write_blob(rel, data, indexed=note.find_version(new_version) is not None)

        now = utc_now()
        record = VersionRecord(version=new_version, path=rel, hash=digest, created_at=now)
        note.versions.append(record)
        note.current_version = new_version
        note.updated_at = now
        note.working_hash = digest
        self._dirty.add(slug)
        return record

    def delete(self, identifier: str) -> NoteRecord:
        """Remove a note, its version blobs and its working copy.

        The identifier must match exactly one slug (case-insensitive), or
        failing that exactly one title.
        """
        lowered = identifier.lower()
        matches = [n for n in self._notes.values() if n.slug.lower() == lowered]
        if not matches:
            matches = [n for n in self._notes.values() if n.title.lower() == lowered]
        if not matches:
            msg = f"Note not found: {identifier}"
            raise NoteNotFoundError(msg)
        if len(matches) > 1:
            slugs = ", ".join(sorted(n.slug for n in matches))
            msg = f"Multiple notes match: {identifier} ({slugs})"
            raise AmbiguousNoteError(msg)

        note = matches[0]
        self.working.remove(note.slug)
        versions_dir = self.cfg.note_versions_dir(note.slug)
        if versions_dir.exists():
            try:
                shutil.rmtree(versions_dir)
            except OSError as exc:
                raise NoteIOError(versions_dir, "Failed to remove") from exc

        del self._notes[note.slug]
        self._dirty.discard(note.slug)
        self._deleted.add(note.slug)
        return note


@contextmanager
def open_store(cfg: NotesConfig) -> Iterator[VersionStore]:
    """Load the store, yield it, and save it if the block finished cleanly."""
    store = VersionStore.load(cfg)
    yield store
    store.save()
