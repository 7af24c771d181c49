"""Working copies: the mutable files under files/ that users edit directly."""

from __future__ import annotations

from typing import TYPE_CHECKING

from notes.errors import NoteIOError

if TYPE_CHECKING:
    from pathlib import Path

    from notes.config import NotesConfig
    from notes.models import NoteRecord


class WorkingCopyManager:
    """Raw byte I/O against working-copy paths. Never touches version history."""

    def __init__(self, cfg: NotesConfig) -> None:
        self.cfg = cfg

    def path(self, slug: str) -> Path:
        return self.cfg.working_file(slug)

    def exists(self, slug: str) -> bool:
        return self.path(slug).exists()

    def ensure_materialized(self, note: NoteRecord) -> Path:
        """Recreate a missing working copy from the note's current version."""
        path = self.path(note.slug)
        if path.exists():
            return path

        source = self.cfg.version_path(note.current_record().path)
        try:
            content = source.read_bytes()
        except OSError as exc:
            raise NoteIOError(source, "Failed to read version") from exc
        self.write(note.slug, content)
        return path

    def read(self, slug: str) -> bytes:
        path = self.path(slug)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise NoteIOError(path, "Failed to read working copy") from exc

    def write(self, slug: str, data: bytes) -> Path:
        path = self.path(slug)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise NoteIOError(path, "Failed to write working copy") from exc
        return path

    def remove(self, slug: str) -> None:
        path = self.path(slug)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise NoteIOError(path, "Failed to remove working copy") from exc
