"""
Entry Store — persistence collaborator for World Info entries.

Behavioral Contract:
- Entries are serialized once at this boundary; matching code only ever
  sees validated WorldInfoEntry models
- get_entries() returns a snapshot: deep copies the caller may hold for the
  duration of a match pass without seeing concurrent edits
- Trigger counters are incremented atomically in SQL, per scenario and
  optionally per session
- Every write invalidates the scenario's snapshot cache
- A row whose record fails validation is logged and left out of snapshots
"""

import sqlite3
import threading
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from lore_engine.models.entry import WorldInfoEntry
from lore_engine.models.match import TriggerReceipt

logger = structlog.get_logger(__name__)

# Runtime state lives in columns, never in entry_json
_TRIGGER_FIELDS = ("trigger_count", "last_triggered_at")


class EntryNotFoundError(KeyError):
    """Raised when an entry id is not present in the store."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteEntryStore:
    """
    World Info entry store.
    Prototype: SQLite with JSON-encoded entry records. Production: the
    platform's relational database.
    """

    def __init__(self, db_path: str = ":memory:", cache_ttl_seconds: int = 300):
        self.db_path = db_path
        self.cache_ttl_seconds = cache_ttl_seconds
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._cache: Dict[Tuple[str, bool], Tuple[float, List[WorldInfoEntry]]] = {}
        self._generations: Dict[str, int] = {}
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the entry and session trigger tables if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS world_info_entries (
                id TEXT PRIMARY KEY,
                scenario_id TEXT NOT NULL,
                priority INTEGER NOT NULL DEFAULT 0,
                display_order INTEGER NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 1,
                trigger_count INTEGER NOT NULL DEFAULT 0,
                unscoped_trigger_count INTEGER NOT NULL DEFAULT 0,
                last_triggered_at TEXT,
                entry_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_entries_scenario ON world_info_entries(scenario_id)
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS session_triggers (
                session_id TEXT NOT NULL,
                entry_id TEXT NOT NULL,
                trigger_count INTEGER NOT NULL DEFAULT 0,
                last_triggered_at TEXT,
                PRIMARY KEY (session_id, entry_id)
            )
        """)
        self._conn.commit()

    # --- Snapshot reads ---

    def _deserialize(self, row: sqlite3.Row) -> WorldInfoEntry:
        entry = WorldInfoEntry.model_validate_json(row["entry_json"])
        return entry.model_copy(update={
            "display_order": row["display_order"],
            "trigger_count": row["trigger_count"],
            "last_triggered_at": _parse_time(row["last_triggered_at"]),
        })

    def _fetch_scenario_rows(self, scenario_id: str, include_inactive: bool) -> List[sqlite3.Row]:
        query = "SELECT * FROM world_info_entries WHERE scenario_id = ?"
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY priority DESC, display_order ASC, created_at ASC, id ASC"
        return self._conn.execute(query, (scenario_id,)).fetchall()

    def _load_scenario(self, scenario_id: str, include_inactive: bool) -> List[WorldInfoEntry]:
        key = (scenario_id, include_inactive)
        with self._lock:
            cached = self._cache.get(key)
            generation = self._generations.get(scenario_id, 0)
        if cached and cached[0] > time.monotonic():
            return cached[1]

        entries = []
        for row in self._fetch_scenario_rows(scenario_id, include_inactive):
            try:
                entries.append(self._deserialize(row))
            except ValidationError as e:
                # Corrupt records are skipped, never matched
                logger.warning(
                    "Skipping unreadable world info entry",
                    entry_id=row["id"],
                    scenario_id=scenario_id,
                    error=str(e),
                )

        if self.cache_ttl_seconds > 0:
            with self._lock:
                # Skip caching when a write landed during the read
                if self._generations.get(scenario_id, 0) == generation:
                    self._cache[key] = (time.monotonic() + self.cache_ttl_seconds, entries)
        return entries

    def _session_state(self, session_id: str, scenario_id: str) -> Dict[str, sqlite3.Row]:
        rows = self._conn.execute(
            """
            SELECT e.id AS entry_id,
                   e.unscoped_trigger_count,
                   e.last_triggered_at,
                   st.trigger_count AS session_trigger_count,
                   st.last_triggered_at AS session_last_triggered_at
            FROM world_info_entries e
            LEFT JOIN session_triggers st ON st.entry_id = e.id AND st.session_id = ?
            WHERE e.scenario_id = ?
            """,
            (session_id, scenario_id),
        ).fetchall()
        return {r["entry_id"]: r for r in rows}

    def get_entries(
        self,
        scenario_id: str,
        session_id: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[WorldInfoEntry]:
        """
        Snapshot of a scenario's entries.

        With a session id, trigger counters reflect that session plus any
        trigger recorded without a session, which scopes trigger-once entries
        to the conversation that fired them.
        """
        entries = [e.model_copy(deep=True) for e in self._load_scenario(scenario_id, include_inactive)]
        if session_id is None:
            return entries

        state = self._session_state(session_id, scenario_id)
        for entry in entries:
            row = state.get(entry.id)
            if row is None:
                continue
            session_count = row["session_trigger_count"] or 0
            entry.trigger_count = session_count + row["unscoped_trigger_count"]
            if row["unscoped_trigger_count"] > 0:
                entry.last_triggered_at = _parse_time(row["last_triggered_at"])
            else:
                entry.last_triggered_at = _parse_time(row["session_last_triggered_at"])
        return entries

    def get_entry(self, entry_id: str) -> Optional[WorldInfoEntry]:
        """Get a specific entry by ID."""
        row = self._conn.execute(
            "SELECT * FROM world_info_entries WHERE id = ?", (entry_id,)
        ).fetchone()
        return self._deserialize(row) if row else None

    def _scenario_of(self, entry_id: str) -> Optional[str]:
        row = self._conn.execute(
            "SELECT scenario_id FROM world_info_entries WHERE id = ?", (entry_id,)
        ).fetchone()
        return row["scenario_id"] if row else None

    def count_active(self, scenario_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) AS cnt FROM world_info_entries WHERE scenario_id = ? AND is_active = 1",
            (scenario_id,),
        ).fetchone()
        return row["cnt"]

    # --- Authoring writes ---

    def add_entry(self, entry: WorldInfoEntry) -> WorldInfoEntry:
        """Insert a new entry. Raises sqlite3.IntegrityError on a duplicate id."""
        now = _utcnow()
        entry = entry.model_copy(update={
            "created_at": entry.created_at or now,
            "updated_at": now,
        })
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO world_info_entries (
                    id, scenario_id, priority, display_order, is_active,
                    trigger_count, last_triggered_at, entry_json, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.scenario_id,
                    entry.priority,
                    entry.display_order,
                    int(entry.is_active),
                    entry.trigger_count,
                    entry.last_triggered_at.isoformat() if entry.last_triggered_at else None,
                    entry.model_dump_json(exclude=set(_TRIGGER_FIELDS)),
                    entry.created_at.isoformat(),
                    entry.updated_at.isoformat(),
                ),
            )
        self.invalidate(entry.scenario_id)
        return entry

    def update_entry(self, entry_id: str, **changes) -> WorldInfoEntry:
        """
        Apply authoring changes to an entry and return the updated model.

        Trigger state cannot be edited here; use increment_trigger or
        reset_triggers.
        """
        forbidden = set(changes) & set(_TRIGGER_FIELDS + ("id", "scenario_id"))
        if forbidden:
            raise ValueError(f"Fields cannot be updated directly: {sorted(forbidden)}")

        current = self.get_entry(entry_id)
        if current is None:
            raise EntryNotFoundError(entry_id)

        data = current.model_dump()
        data.update(changes)
        data["updated_at"] = _utcnow()
        updated = WorldInfoEntry.model_validate(data)

        with self._lock, self._conn:
            self._conn.execute(
                """
                UPDATE world_info_entries
                SET priority = ?, display_order = ?, is_active = ?, entry_json = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    updated.priority,
                    updated.display_order,
                    int(updated.is_active),
                    updated.model_dump_json(exclude=set(_TRIGGER_FIELDS)),
                    updated.updated_at.isoformat(),
                    entry_id,
                ),
            )
        self.invalidate(updated.scenario_id)
        return updated

    def delete_entry(self, entry_id: str) -> bool:
        """Remove an entry and its session trigger state."""
        scenario_id = self._scenario_of(entry_id)
        if scenario_id is None:
            return False
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM session_triggers WHERE entry_id = ?", (entry_id,))
            self._conn.execute("DELETE FROM world_info_entries WHERE id = ?", (entry_id,))
        self.invalidate(scenario_id)
        return True

    def reorder_entries(self, scenario_id: str, orders: Iterable[Tuple[str, int]]) -> int:
        """Batch-update display order. Returns the number of entries updated."""
        updated = 0
        now = _utcnow().isoformat()
        with self._lock, self._conn:
            for entry_id, display_order in orders:
                cursor = self._conn.execute(
                    "UPDATE world_info_entries SET display_order = ?, updated_at = ? "
                    "WHERE id = ? AND scenario_id = ?",
                    (display_order, now, entry_id, scenario_id),
                )
                updated += cursor.rowcount
        self.invalidate(scenario_id)
        return updated

    # --- Trigger state ---

    def increment_trigger(
        self,
        entry_id: str,
        session_id: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> TriggerReceipt:
        """
        Atomically bump the trigger counters for an entry.

        A trigger recorded without a session counts against every session.
        Raises EntryNotFoundError for an unknown id; sqlite3 errors propagate.
        """
        at = at or _utcnow()
        stamp = at.isoformat()
        session_count: Optional[int] = None

        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE world_info_entries "
                "SET trigger_count = trigger_count + 1, "
                "unscoped_trigger_count = unscoped_trigger_count + ?, "
                "last_triggered_at = ? WHERE id = ?",
                (0 if session_id is not None else 1, stamp, entry_id),
            )
            if cursor.rowcount == 0:
                raise EntryNotFoundError(entry_id)
            if session_id is not None:
                self._conn.execute(
                    """
                    INSERT INTO session_triggers (session_id, entry_id, trigger_count, last_triggered_at)
                    VALUES (?, ?, 1, ?)
                    ON CONFLICT(session_id, entry_id) DO UPDATE SET
                        trigger_count = trigger_count + 1,
                        last_triggered_at = excluded.last_triggered_at
                    """,
                    (session_id, entry_id, stamp),
                )
                session_count = self._conn.execute(
                    "SELECT trigger_count FROM session_triggers WHERE session_id = ? AND entry_id = ?",
                    (session_id, entry_id),
                ).fetchone()["trigger_count"]
            row = self._conn.execute(
                "SELECT scenario_id, trigger_count FROM world_info_entries WHERE id = ?",
                (entry_id,),
            ).fetchone()

        self.invalidate(row["scenario_id"])
        return TriggerReceipt(
            entry_id=entry_id,
            session_id=session_id,
            trigger_count=row["trigger_count"],
            session_trigger_count=session_count,
            triggered_at=at,
        )

    def reset_triggers(self, entry_id: str, session_id: Optional[str] = None) -> None:
        """
        Clear trigger state, re-arming trigger-once entries.

        With a session id only that session is reset; otherwise the
        scenario-wide counter and every session counter are cleared.
        """
        scenario_id = self._scenario_of(entry_id)
        if scenario_id is None:
            raise EntryNotFoundError(entry_id)
        with self._lock, self._conn:
            if session_id is not None:
                self._conn.execute(
                    "DELETE FROM session_triggers WHERE session_id = ? AND entry_id = ?",
                    (session_id, entry_id),
                )
            else:
                self._conn.execute(
                    "UPDATE world_info_entries SET trigger_count = 0, unscoped_trigger_count = 0, "
                    "last_triggered_at = NULL WHERE id = ?",
                    (entry_id,),
                )
                self._conn.execute("DELETE FROM session_triggers WHERE entry_id = ?", (entry_id,))
        self.invalidate(scenario_id)

    def invalidate(self, scenario_id: str) -> None:
        """Drop cached snapshots for a scenario."""
        with self._lock:
            self._generations[scenario_id] = self._generations.get(scenario_id, 0) + 1
            self._cache.pop((scenario_id, True), None)
            self._cache.pop((scenario_id, False), None)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
