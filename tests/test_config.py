from __future__ import annotations

import pytest

from changewatch.config import DEFAULT_DATABASE_URL, ChangeWatchConfig, StorageConfig


class TestChangeWatchConfig:
    def test_defaults_watch_everything(self) -> None:
        config = ChangeWatchConfig()

        assert config.enabled is True
        assert config.placeholder_prefix == "change"
        assert config.should_watch_collection("anything")

    def test_watched_collections_restrict_reporting(self) -> None:
        config = ChangeWatchConfig(watched_collections=frozenset({"user"}))

        assert config.should_watch_collection("user")
        assert not config.should_watch_collection("email")

    def test_ignored_collections_win(self) -> None:
        config = ChangeWatchConfig(ignored_collections=frozenset({"log"}))

        assert not config.should_watch_collection("log")
        assert config.should_watch_collection("user")

    def test_plain_sets_are_frozen(self) -> None:
        config = ChangeWatchConfig(watched_collections={"user"}, ignored_collections={"log"})  # type: ignore[arg-type]

        assert isinstance(config.watched_collections, frozenset)
        assert isinstance(config.ignored_collections, frozenset)

    def test_rejects_empty_placeholder_prefix(self) -> None:
        with pytest.raises(ValueError, match="placeholder_prefix"):
            ChangeWatchConfig(placeholder_prefix="")

    def test_rejects_overlapping_collections(self) -> None:
        with pytest.raises(ValueError, match="both watched and ignored"):
            ChangeWatchConfig(watched_collections=frozenset({"user"}), ignored_collections=frozenset({"user"}))


class TestStorageConfig:
    def test_rejects_empty_url(self) -> None:
        with pytest.raises(ValueError, match="database_url"):
            StorageConfig(database_url="")

    def test_from_env_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CHANGEWATCH_DATABASE_URL", raising=False)
        monkeypatch.delenv("CHANGEWATCH_DB_ECHO", raising=False)

        config = StorageConfig.from_env()

        assert config.database_url == DEFAULT_DATABASE_URL
        assert config.echo is False

    @pytest.mark.parametrize("value,expected", [("1", True), ("TRUE", True), ("yes", True), ("no", False)])
    def test_from_env_reads_variables(self, monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
        monkeypatch.setenv("CHANGEWATCH_DATABASE_URL", "sqlite+aiosqlite:///changes.db")
        monkeypatch.setenv("CHANGEWATCH_DB_ECHO", value)

        config = StorageConfig.from_env()

        assert config.database_url == "sqlite+aiosqlite:///changes.db"
        assert config.echo is expected
