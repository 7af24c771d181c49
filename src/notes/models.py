"""Data models for the version index."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from notes.errors import InvalidOperationError

_DEFAULT_SLUG = "note"


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


def default_title(now: datetime | None = None) -> str:
    """Title for notes created without one: note-YYYYMMDD-HHMMSS (UTC)."""
    now = now or datetime.now(UTC)
    return f"note-{now:%Y%m%d-%H%M%S}"


def slugify(title: str) -> str:
    """Lowercase ASCII alphanumerics; whitespace/hyphen/underscore runs become one hyphen.

    Other characters are dropped. Falls back to "note" when nothing survives.
    """
    chars: list[str] = []
    for c in title:
        if c.isascii() and c.isalnum():
            chars.append(c.lower())
        elif (c.isspace() or c in "-_") and chars and chars[-1] != "-":
            chars.append("-")
    slug = "".join(chars).strip("-")
    return slug or _DEFAULT_SLUG


def hash_bytes(data: bytes) -> str:
    """SHA-256 hex digest."""
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class VersionRecord:
    """One immutable snapshot of a note."""

    version: int
    path: str                  # root-relative, e.g. versions/<slug>/0000001.md
    hash: str
    created_at: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> VersionRecord:
        return cls(
            version=int(d["version"]),
            path=d["path"],
            hash=d["hash"],
            created_at=d.get("created_at", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "path": self.path,
            "hash": self.hash,
            "created_at": self.created_at,
        }


@dataclass
class NoteRecord:
    """Metadata for one note: its title and ordered version history."""

    slug: str
    title: str
    created_at: str = ""
    updated_at: str = ""
    current_version: int = 0
    versions: list[VersionRecord] = field(default_factory=list)
    working_hash: str | None = None   # advisory; the last version's hash is authoritative

    @property
    def latest(self) -> VersionRecord | None:
        return self.versions[-1] if self.versions else None

    def find_version(self, version: int) -> VersionRecord | None:
        for record in self.versions:
            if record.version == version:
                return record
        return None

    def current_record(self) -> VersionRecord:
        """Record for current_version, or the last record if that number is missing."""
        record = self.find_version(self.current_version)
        if record is not None:
            return record
        if not self.versions:
            msg = f"Note has no versions: {self.slug}"
            raise InvalidOperationError(msg)
        return self.versions[-1]

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> NoteRecord:
        return cls(
            slug=d["slug"],
            title=d.get("title", d["slug"]),
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
            current_version=int(d.get("current_version", 0)),
            versions=[VersionRecord.from_dict(v) for v in d.get("versions", [])],
            working_hash=d.get("working_hash"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "slug": self.slug,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "current_version": self.current_version,
            "versions": [v.to_dict() for v in self.versions],
            "working_hash": self.working_hash,
        }
