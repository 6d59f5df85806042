"""Tests for configuration loading and validation."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from file_sync.config import DEFAULT_CONFIG, Config, ConfigError


class TestPersistence:
    """Tests for reading and writing the JSON file."""

    def test_creates_default_file(self, tmp_path: Path) -> None:
        """A missing file is created with defaults."""
        path = tmp_path / "config.json"

        config = Config(path)

        assert path.exists()
        assert json.loads(path.read_text()) == DEFAULT_CONFIG
        assert config.batch_size == 10
        assert config.batch_timeout == 2.0
        assert config.tick_interval == 0.1
        assert config.selective_sync_limit == 5

    def test_stored_values_override_defaults(self, tmp_path: Path) -> None:
        """Stored keys win; missing keys get defaults."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"batch_size": 25, "remote_host": "me@box"}))

        config = Config(path)

        assert config.batch_size == 25
        assert config.remote_host == "me@box"
        assert config.rsync_args == ["-avz"]

    def test_corrupt_file_falls_back(self, tmp_path: Path) -> None:
        """Unreadable JSON is ignored with defaults in place."""
        path = tmp_path / "config.json"
        path.write_text("{not json")

        config = Config(path)

        assert config.batch_size == 10

    def test_save_roundtrip(self, tmp_path: Path) -> None:
        """Saved values load back."""
        path = tmp_path / "config.json"
        config = Config(path)
        config.exclude_patterns = ["*.tmp", "  ", " .git "]
        config.save()

        assert Config(path).exclude_patterns == ["*.tmp", ".git"]


class TestSetters:
    """Setters clamp nonsense values."""

    def test_clamping(self, tmp_path: Path) -> None:
        config = Config(tmp_path / "config.json")
        config.batch_size = 0
        config.batch_timeout = -3
        config.tick_interval = 0
        config.connect_timeout = 0

        assert config.batch_size == 1
        assert config.batch_timeout == 0.0
        assert config.tick_interval == 0.01
        assert config.connect_timeout == 1

    def test_apply_overrides_skips_none(self, tmp_path: Path) -> None:
        """None means "not given on the command line"."""
        config = Config(tmp_path / "config.json")
        config.apply_overrides(batch_size=None, remote_host="u@h")

        assert config.batch_size == 10
        assert config.remote_host == "u@h"

    def test_apply_overrides_rejects_unknown(self, tmp_path: Path) -> None:
        config = Config(tmp_path / "config.json")

        with pytest.raises(AttributeError):
            config.apply_overrides(colour="blue")

    def test_log_file_override(self, tmp_path: Path) -> None:
        config = Config(tmp_path / "config.json")
        config.log_file = str(tmp_path / "sync.log")

        assert config.log_file == tmp_path / "sync.log"


class TestValidate:
    """Tests for required values and the local path check."""

    def test_missing_values(self, tmp_path: Path) -> None:
        config = Config(tmp_path / "config.json")

        with pytest.raises(ConfigError, match="local_path, remote_host, remote_path"):
            config.validate()

    def test_local_path_must_be_directory(self, tmp_path: Path) -> None:
        config = Config(tmp_path / "config.json")
        config.apply_overrides(
            local_path=str(tmp_path / "nope"), remote_host="h", remote_path="/r"
        )

        with pytest.raises(ConfigError, match="not a directory"):
            config.validate()

    def test_local_path_is_made_absolute(self, tmp_path: Path, monkeypatch) -> None:
        (tmp_path / "data").mkdir()
        monkeypatch.chdir(tmp_path)
        config = Config(tmp_path / "config.json")
        config.apply_overrides(local_path="data", remote_host="h", remote_path="/r")

        config.validate()

        assert config.local_path == os.path.realpath(tmp_path / "data")
