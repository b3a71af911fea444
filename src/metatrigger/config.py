"""Runtime configuration and factories."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.engine import Engine


@dataclass
class TriggerConfig:
    """MetaTrigger configuration.

    Supports sqlite:/// and postgresql:// database URL schemes.
    """

    database_url: str
    mappings_path: Path
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> TriggerConfig:
        """Create config from environment variables.

        Resolution order for each setting:
        1. DATABASE_URL / METATRIGGER_MAPPINGS_PATH / METATRIGGER_LOG_LEVEL
        2. Default under base_path: data/metatrigger.db, mappings/
        3. Default relative to the working directory
        """
        root = base_path or Path.cwd()

        url = os.environ.get("DATABASE_URL")
        if not url:
            if base_path:
                url = f"sqlite:///{base_path / 'data' / 'metatrigger.db'}"
            else:
                url = "sqlite:///metatrigger.db"

        mappings_path = os.environ.get("METATRIGGER_MAPPINGS_PATH")

        return cls(
            database_url=url,
            mappings_path=Path(mappings_path) if mappings_path else root / "mappings",
            log_level=os.environ.get("METATRIGGER_LOG_LEVEL", "INFO").upper(),
        )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_postgresql(self) -> bool:
        return self.database_url.startswith("postgresql")

    @property
    def sqlalchemy_url(self) -> str:
        """URL suitable for SQLAlchemy engine creation.

        Ensures postgresql:// URLs use the psycopg (v3) driver.
        """
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+psycopg://", 1)
        return self.database_url

    def create_engine(self, **kwargs) -> Engine:
        """Create a SQLAlchemy engine for the configured database.

        Raises:
            ValueError: For unsupported URL schemes.
        """
        if not (self.is_sqlite or self.is_postgresql):
            raise ValueError(f"Unsupported database URL scheme: {self.database_url}")

        if self.is_sqlite:
            # Ensure parent directory exists for file databases
            sqlite_path = self.database_url.replace("sqlite:///", "")
            if sqlite_path and sqlite_path != ":memory:" and self.database_url != "sqlite://":
                Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)

        return sa_create_engine(self.sqlalchemy_url, **kwargs)

    def configure_logging(self) -> None:
        logging.basicConfig(
            level=self.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
