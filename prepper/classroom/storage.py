"""
StorageTier - Two-tier key/value persistence in ~/.prepper.

Records are JSON values stored under namespaced string keys:
- Primary tier (primary.db): quota-limited, no expiry
- Backup tier (backup.db): every record expires after a fixed number of days

Writes degrade instead of failing: a topic-scoped container that does not fit
is retried with only the active topic's subtree, and the backup write is
best-effort. Reads fall back from primary to backup and never raise.
"""

import json
import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

from prepper.config import DEFAULT_BACKUP_EXPIRY_DAYS, DEFAULT_QUOTA_BYTES, Settings


logger = logging.getLogger(__name__)

PROGRESS_STORAGE_KEY = "prepper_progress"
SETTINGS_STORAGE_KEY = "prepper_ai_settings"
RESPONSES_STORAGE_KEY = "prepper_ai_responses"
TOPIC_STORAGE_KEY = "prepper_topic"
THEME_STORAGE_KEY = "prepper_theme_dark_mode"
CONVERSATIONS_STORAGE_KEY = "prepper_ai_conversations"

ACTIVE_TOPIC_FIELD = "activeTopic"


class StorageQuotaExceeded(Exception):
    """A write would push a tier past its byte quota."""


class SQLiteTier:
    """
    One key/value tier backed by a SQLite file.

    Each method opens its own connection, so a tier object is cheap to share.
    """

    def __init__(
        self,
        db_path: Path,
        quota_bytes: Optional[int] = None,
        expiry_days: Optional[int] = None,
    ):
        """
        Initialize a tier.

        Args:
            db_path: Path to the SQLite file (created on first use)
            quota_bytes: Maximum summed size of stored values, None for unlimited
            expiry_days: Record lifetime, None for records that never expire
        """
        self.db_path = Path(db_path)
        self.quota_bytes = quota_bytes
        self.expiry_days = expiry_days
        self._ensure_database()

    def _ensure_database(self):
        """Create database and table if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS records (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at TEXT
                );
            """)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def get(self, key: str) -> Optional[str]:
        """Return the raw stored text, or None if absent or expired."""
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "SELECT value, expires_at FROM records WHERE key = ?", (key,)
            )
            row = cursor.fetchone()
            if not row:
                return None
            if row["expires_at"] and datetime.fromisoformat(row["expires_at"]) <= datetime.now():
                conn.execute("DELETE FROM records WHERE key = ?", (key,))
                conn.commit()
                return None
            return row["value"]
        finally:
            conn.close()

    def set(self, key: str, value: str):
        """
        Store raw text under key.

        Raises:
            StorageQuotaExceeded: If the write would exceed quota_bytes
            sqlite3.Error: On database failure
        """
        conn = self._get_connection()
        try:
            if self.quota_bytes is not None:
                cursor = conn.execute(
                    "SELECT COALESCE(SUM(LENGTH(CAST(value AS BLOB))), 0) AS used "
                    "FROM records WHERE key != ?",
                    (key,)
                )
                used = cursor.fetchone()["used"]
                size = len(value.encode("utf-8"))
                if used + size > self.quota_bytes:
                    raise StorageQuotaExceeded(
                        f"{key}: {size} bytes exceeds remaining quota "
                        f"({self.quota_bytes - used} of {self.quota_bytes})"
                    )

            expires_at = None
            if self.expiry_days is not None:
                expires_at = (datetime.now() + timedelta(days=self.expiry_days)).isoformat()

            conn.execute(
                """INSERT INTO records (key, value, expires_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                     value = excluded.value,
                     expires_at = excluded.expires_at""",
                (key, value, expires_at)
            )
            conn.commit()
        finally:
            conn.close()

    def remove(self, key: str):
        """Delete key; missing keys are ignored."""
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM records WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()


# -----------------------------------------------------------------------------
# Degradation
# -----------------------------------------------------------------------------


def reduce_to_active_topic(value: Any) -> Optional[dict]:
    """
    Shrink a topic-scoped container to the active topic's subtree.

    A container qualifies when it is a dict carrying ACTIVE_TOPIC_FIELD and at
    least one nested dict keyed by topic id that holds the active topic.

    Returns:
        Reduced copy of value, or None if value is not a topic-scoped container
    """
    if not isinstance(value, dict):
        return None
    active = value.get(ACTIVE_TOPIC_FIELD)
    if not isinstance(active, str):
        return None

    reduced = dict(value)
    found = False
    for field, nested in value.items():
        if isinstance(nested, dict) and active in nested:
            reduced[field] = {active: nested[active]}
            found = True
    return reduced if found else None


class StorageTier:
    """
    Exception-safe facade over a primary and a backup SQLiteTier.

    save() never raises, load() never raises and returns None for absent or
    corrupt records, clear() never raises.
    """

    def __init__(self, primary: SQLiteTier, backup: SQLiteTier):
        self.primary = primary
        self.backup = backup

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageTier":
        return cls(
            primary=SQLiteTier(settings.primary_db, quota_bytes=settings.storage_quota_bytes),
            backup=SQLiteTier(settings.backup_db, expiry_days=settings.backup_expiry_days),
        )

    @classmethod
    def at(
        cls,
        data_dir: Path,
        quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES,
        expiry_days: int = DEFAULT_BACKUP_EXPIRY_DAYS,
    ) -> "StorageTier":
        """Build both tiers inside data_dir."""
        data_dir = Path(data_dir)
        return cls(
            primary=SQLiteTier(data_dir / "primary.db", quota_bytes=quota_bytes),
            backup=SQLiteTier(data_dir / "backup.db", expiry_days=expiry_days),
        )

    # -------------------------------------------------------------------------
    # Write
    # -------------------------------------------------------------------------

    def save(self, key: str, value: Any) -> bool:
        """
        Persist value under key.

        Returns:
            True if the primary tier accepted the full or reduced payload
        """
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning(f"Cannot serialize value for {key}: {e}")
            return False

        stored = False
        try:
            self.primary.set(key, payload)
            stored = True
        except (StorageQuotaExceeded, sqlite3.Error) as e:
            logger.warning(f"Primary write failed for {key}: {e}")
            reduced = reduce_to_active_topic(value)
            if reduced is not None:
                payload = json.dumps(reduced)
                try:
                    self.primary.set(key, payload)
                    stored = True
                    logger.info(
                        f"Stored reduced payload for {key} "
                        f"(active topic {reduced[ACTIVE_TOPIC_FIELD]!r} only)"
                    )
                except (StorageQuotaExceeded, sqlite3.Error) as e2:
                    logger.warning(f"Reduced write failed for {key}: {e2}")

        try:
            self.backup.set(key, payload)
        except (StorageQuotaExceeded, sqlite3.Error) as e:
            logger.warning(f"Backup write failed for {key}: {e}")

        return stored

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def load(self, key: str) -> Any:
        """Return the stored value, or None if both tiers miss."""
        for name, tier in (("primary", self.primary), ("backup", self.backup)):
            try:
                raw = tier.get(key)
            except (sqlite3.Error, ValueError) as e:
                # ValueError: unparseable expires_at on the stored row
                logger.warning(f"{name} read failed for {key}: {e}")
                continue
            if raw is None:
                continue
            try:
                return json.loads(raw)
            except ValueError as e:
                logger.warning(f"Corrupt {name} record for {key}: {e}")
        return None

    def clear(self, key: str) -> bool:
        """Remove key from both tiers."""
        cleared = True
        for name, tier in (("primary", self.primary), ("backup", self.backup)):
            try:
                tier.remove(key)
            except sqlite3.Error as e:
                logger.warning(f"{name} clear failed for {key}: {e}")
                cleared = False
        return cleared
