from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@dataclass
class ChangeWatchConfig:
    enabled: bool = True
    placeholder_prefix: str = "change"
    # None means every collection is watched
    watched_collections: Optional[frozenset[str]] = None
    ignored_collections: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.placeholder_prefix:
            raise ValueError("placeholder_prefix cannot be empty")
        if self.watched_collections is not None:
            self.watched_collections = frozenset(self.watched_collections)
            overlap = self.watched_collections & frozenset(self.ignored_collections)
            if overlap:
                raise ValueError(
                    f"Collections cannot be both watched and ignored: {sorted(overlap)}"
                )
        self.ignored_collections = frozenset(self.ignored_collections)

    def should_watch_collection(self, collection: str) -> bool:
        if collection in self.ignored_collections:
            return False
        if self.watched_collections is None:
            return True
        return collection in self.watched_collections


@dataclass
class StorageConfig:
    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.database_url:
            raise ValueError("database_url cannot be empty")

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """
        Build a StorageConfig from CHANGEWATCH_DATABASE_URL and CHANGEWATCH_DB_ECHO.
        Unset variables fall back to the defaults.
        """
        echo = os.environ.get("CHANGEWATCH_DB_ECHO", "").strip().lower() in ("1", "true", "yes")
        return cls(
            database_url=os.environ.get("CHANGEWATCH_DATABASE_URL", DEFAULT_DATABASE_URL),
            echo=echo,
        )
