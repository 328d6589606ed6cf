"""Database persistence for sizing configuration and compound state.

Implements SQLite-based storage keyed by user id. Configuration records
are always stored whole; there is no partial update path.
"""

import json
import logging
import math
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import Configuration, ConfigValidationError
from ..models import CompoundState

logger = logging.getLogger(__name__)


class ConfigStore:
    """Manages named sizing configurations and compound state using SQLite."""

    def __init__(self, db_path: str = "data/sizing.db"):
        """Initialize config store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._ensure_database()

    def _ensure_database(self) -> None:
        """Create database and tables if they don't exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sizing_config (
                    user_id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS compound_state (
                    user_id TEXT PRIMARY KEY,
                    original_size REAL NOT NULL,
                    current_size REAL NOT NULL,
                    current_multiplier REAL NOT NULL,
                    total_compounded REAL NOT NULL,
                    total_profit_seen REAL NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def save_config(self, user_id: str, config: Configuration | dict) -> Configuration:
        """Persist a full configuration record, replacing any existing one.

        Args:
            user_id: Owner of the configuration
            config: Complete Configuration, or a dict holding every field

        Returns:
            The validated configuration that was stored

        Raises:
            ConfigValidationError: If the record is partial or invalid
        """
        if isinstance(config, dict):
            config = Configuration.from_dict(config, strict=True)
        config.validate()

        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                INSERT OR REPLACE INTO sizing_config (user_id, payload, updated_at)
                VALUES (?, ?, ?)
            """, (user_id, json.dumps(config.to_dict()), datetime.now().isoformat()))
            conn.commit()

        logger.info(f"✅ Saved sizing configuration for user {user_id}")
        return config

    def load_config(self, user_id: str) -> Optional[Configuration]:
        """Load a user's configuration.

        Returns:
            Stored configuration, or None if the user has none

        Raises:
            ConfigValidationError: If the stored record is corrupt
        """
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT payload FROM sizing_config WHERE user_id = ?", (user_id,)
            ).fetchone()

        if row is None:
            return None

        try:
            data = json.loads(row[0])
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Corrupt configuration for user {user_id}: {e}")

        config = Configuration.from_dict(data)
        config.validate()
        return config

    def delete_config(self, user_id: str) -> bool:
        """Delete a user's configuration.

        Returns:
            True if a record was deleted
        """
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM sizing_config WHERE user_id = ?", (user_id,))
            conn.commit()
            return cursor.rowcount > 0

    def save_compound_state(self, user_id: str, state: CompoundState) -> None:
        """Persist compound state."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                INSERT OR REPLACE INTO compound_state (
                    user_id, original_size, current_size, current_multiplier,
                    total_compounded, total_profit_seen, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                user_id,
                state.original_size,
                state.current_size,
                state.current_multiplier,
                state.total_compounded,
                state.total_profit_seen,
                datetime.now().isoformat(),
            ))
            conn.commit()

    def load_compound_state(self, user_id: str) -> Optional[CompoundState]:
        """Load compound state, None if never saved or unusable."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM compound_state WHERE user_id = ?", (user_id,)
            ).fetchone()

        if row is None:
            return None

        original, current = row["original_size"], row["current_size"]
        if not (_positive_finite(original) and _positive_finite(current)):
            logger.warning(
                f"⚠️ Discarding unusable compound state for user {user_id}: "
                f"original={original!r}, current={current!r}"
            )
            return None

        return CompoundState(
            original_size=row["original_size"],
            current_size=row["current_size"],
            current_multiplier=row["current_multiplier"],
            total_compounded=row["total_compounded"],
            total_profit_seen=row["total_profit_seen"],
        )


def _positive_finite(value) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value > 0
