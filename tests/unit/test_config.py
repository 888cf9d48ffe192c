"""Tests for import configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from loomport.config import (
    DEFAULT_DB_PATH,
    DEFAULT_OWNER_ID,
    ConfigError,
    ImportConfig,
    load_config,
)
from loomport.graph.models import Visibility


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep LOOM_* variables from the developer's shell out of the tests."""
    for name in ("LOOM_DB_PATH", "LOOM_OWNER_ID", "LOOM_DEFAULT_VISIBILITY"):
        monkeypatch.delenv(name, raising=False)


class TestImportConfig:
    """Tests for ImportConfig."""

    def test_defaults(self) -> None:
        config = ImportConfig()
        assert config.db_path == DEFAULT_DB_PATH
        assert config.owner_id == DEFAULT_OWNER_ID
        assert config.default_visibility == Visibility.PRIVATE

    def test_from_dict(self) -> None:
        config = ImportConfig.from_dict(
            {"db_path": "data/stories.db", "owner_id": "alex", "default_visibility": "unlisted"}
        )
        assert config.db_path == Path("data/stories.db")
        assert config.owner_id == "alex"
        assert config.default_visibility == Visibility.UNLISTED

    def test_from_dict_rejects_unknown_visibility(self) -> None:
        with pytest.raises(ValueError, match="Invalid visibility 'secret'"):
            ImportConfig.from_dict({"default_visibility": "secret"})

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOOM_DB_PATH", "/tmp/env.db")
        monkeypatch.setenv("LOOM_OWNER_ID", "env-owner")
        monkeypatch.setenv("LOOM_DEFAULT_VISIBILITY", "public")

        config = ImportConfig().with_env_overrides()

        assert config.db_path == Path("/tmp/env.db")
        assert config.owner_id == "env-owner"
        assert config.default_visibility == Visibility.PUBLIC


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_config(tmp_path / "loomport.yaml") == ImportConfig()

    def test_reads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "loomport.yaml"
        path.write_text(
            "# local settings\ndb_path: stories.db\nowner_id: sam\ndefault_visibility: PUBLIC\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.db_path == Path("stories.db")
        assert config.owner_id == "sam"
        assert config.default_visibility == Visibility.PUBLIC

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "loomport.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == ImportConfig()

    def test_env_wins_over_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "loomport.yaml"
        path.write_text("owner_id: file-owner\n", encoding="utf-8")
        monkeypatch.setenv("LOOM_OWNER_ID", "env-owner")
        assert load_config(path).owner_id == "env-owner"

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "loomport.yaml"
        path.write_text("owner_id: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert exc_info.value.path == path

    def test_non_mapping_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "loomport.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Expected a mapping"):
            load_config(path)

    def test_invalid_visibility_in_file(self, tmp_path: Path) -> None:
        path = tmp_path / "loomport.yaml"
        path.write_text("default_visibility: secret\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid visibility"):
            load_config(path)

    def test_invalid_visibility_in_env(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LOOM_DEFAULT_VISIBILITY", "secret")
        with pytest.raises(ConfigError, match="Invalid visibility"):
            load_config(tmp_path / "loomport.yaml")
