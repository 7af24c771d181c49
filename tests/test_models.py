"""Tests for slugs, hashing and record serialization."""

import hashlib
from datetime import UTC, datetime

import pytest

from notes.errors import InvalidOperationError
from notes.models import NoteRecord, VersionRecord, default_title, hash_bytes, slugify


class TestSlugify:
    """Tests for slugify."""

    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Daily", "daily"),
            ("Meeting Notes", "meeting-notes"),
            ("a  -_ b", "a-b"),
            ("Q3 plan: v2!", "q3-plan-v2"),
            ("  padded  ", "padded"),
            ("trailing-", "trailing"),
            ("Crème brûlée", "crme-brle"),
        ],
    )
    def test_slug_rules(self, title, expected):
        assert slugify(title) == expected

    def test_empty_falls_back_to_note(self):
        assert slugify("") == "note"
        assert slugify("!!!") == "note"
        assert slugify(" - _ ") == "note"


class TestHashing:
    """Tests for hash_bytes."""

    def test_sha256_hex(self):
        assert hash_bytes(b"v2") == hashlib.sha256(b"v2").hexdigest()

    def test_empty_content_hash(self):
        assert hash_bytes(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


class TestDefaultTitle:
    def test_timestamp_format(self):
        now = datetime(2026, 10, 18, 9, 5, 7, tzinfo=UTC)
        assert default_title(now) == "note-20261018-090507"


class TestNoteRecord:
    """Tests for NoteRecord helpers."""

    def _note(self, current: int, versions: list[int]) -> NoteRecord:
        return NoteRecord(
            slug="retro",
            title="Retro",
            current_version=current,
            versions=[
                VersionRecord(version=v, path=f"versions/retro/{v:07d}.md", hash=str(v))
                for v in versions
            ],
        )

    def test_current_record_matches_current_version(self):
        note = self._note(2, [1, 2, 3])
        assert note.current_record().version == 2

    def test_current_record_falls_back_to_last(self):
        note = self._note(7, [1, 2, 3])
        assert note.current_record().version == 3

    def test_current_record_without_versions_raises(self):
        with pytest.raises(InvalidOperationError):
            self._note(1, []).current_record()

    def test_dict_round_trip_preserves_order(self):
        note = self._note(3, [1, 2, 3])
        note.working_hash = "abc"
        restored = NoteRecord.from_dict(note.to_dict())
        assert restored == note
        assert [v.version for v in restored.versions] == [1, 2, 3]

    def test_missing_working_hash_is_none(self):
        restored = NoteRecord.from_dict({"slug": "x", "title": "X", "current_version": 1, "versions": []})
        assert restored.working_hash is None
