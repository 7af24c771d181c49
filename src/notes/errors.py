"""Exceptions raised by the version store and snapshot engine."""

from __future__ import annotations

from pathlib import Path


class NotesError(Exception):
    """Base exception for note operations."""


class NoteNotFoundError(NotesError):
    """Raised when an identifier matches no note."""


class VersionNotFoundError(NoteNotFoundError):
    """Raised when a note has no version with the requested number."""


class AmbiguousNoteError(NotesError):
    """Raised when an identifier matches more than one note where uniqueness is required."""


class InvalidOperationError(NotesError):
    """Raised when an operation cannot apply to the note's history (e.g. rollback below v1)."""


class NoteIOError(NotesError):
    """Raised when a filesystem read, write or create fails.

    ``path`` is the file or directory the failure concerns.
    """

    def __init__(self, path: Path | str, message: str = "I/O error") -> None:
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")
