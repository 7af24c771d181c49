"""Tests for configuration loading."""

from pathlib import Path

import pytest

from notes.config import load_config
from notes.errors import NoteIOError


class TestLoadConfig:
    """Tests for load_config."""

    def test_notes_home_sets_root(self, notes_home):
        cfg = load_config()
        assert cfg.root == notes_home
        assert cfg.index_path == notes_home / "index.json"
        assert cfg.pid_path == notes_home / "daemon.pid"
        assert cfg.log_path == notes_home / "daemon.log"

    def test_default_root_without_env(self, monkeypatch):
        monkeypatch.delenv("NOTES_HOME", raising=False)
        assert load_config().root == Path.home() / ".notes"

    def test_explicit_root_wins(self, notes_home, tmp_path):
        assert load_config(tmp_path / "elsewhere").root == tmp_path / "elsewhere"

    def test_defaults(self, notes_home, monkeypatch):
        monkeypatch.delenv("NOTES_DISABLE_DAEMON")
        monkeypatch.delenv("NOTES_EDITOR")
        cfg = load_config()
        assert cfg.daemon.cooldown == 30.0
        assert cfg.daemon.poll_interval == 1.0
        assert cfg.daemon.autostart is True
        assert cfg.editor.command == "subl"

    def test_disable_daemon_env(self, notes_home):
        assert load_config().daemon.autostart is False

    def test_config_toml(self, notes_home, monkeypatch):
        monkeypatch.delenv("NOTES_EDITOR")
        notes_home.mkdir()
        (notes_home / "config.toml").write_text(
            '[daemon]\ncooldown = 5\npoll_interval = 0.5\n\n[editor]\ncommand = "vim"\n'
        )
        cfg = load_config()
        assert cfg.daemon.cooldown == 5.0
        assert cfg.daemon.poll_interval == 0.5
        assert cfg.editor.command == "vim"

    def test_editor_env_overrides_file(self, notes_home, monkeypatch):
        notes_home.mkdir()
        (notes_home / "config.toml").write_text('[editor]\ncommand = "vim"\n')
        monkeypatch.setenv("NOTES_EDITOR", "nano")
        assert load_config().editor.command == "nano"

    def test_invalid_toml(self, notes_home):
        notes_home.mkdir()
        (notes_home / "config.toml").write_text("[daemon\n")
        with pytest.raises(NoteIOError):
            load_config()


class TestPaths:
    """Tests for per-note path helpers."""

    def test_version_paths(self, config):
        assert config.version_rel("retro", 3) == "versions/retro/0000003.md"
        assert config.version_path("versions/retro/0000003.md") == config.root / "versions/retro/0000003.md"
        assert config.working_file("retro") == config.root / "files" / "retro.md"

    def test_ensure_dirs(self, config):
        config.ensure_dirs()
        assert config.versions_dir.is_dir()
        assert config.files_dir.is_dir()
