"""
Trigger Recorder — commits that a matched entry was actually used.

Behavioral Contract:
- Called by the caller after it decides to inject an entry, never by the Ranker
- Increments trigger_count and stamps last_triggered_at through the store
- On persistence failure raises TriggerPersistenceError; nothing in memory
  is advanced speculatively
- Does not deduplicate: callers record each entry at most once per turn
"""

import sqlite3
from datetime import datetime, timezone
from typing import Optional

import structlog

from lore_engine.models.match import TriggerReceipt
from lore_engine.store.entries import EntryNotFoundError, SQLiteEntryStore

logger = structlog.get_logger(__name__)


class TriggerPersistenceError(Exception):
    """Raised when a trigger could not be persisted. The trigger did not happen."""

    def __init__(self, entry_id: str, reason: str):
        super().__init__(f"Failed to record trigger for entry {entry_id}: {reason}")
        self.entry_id = entry_id
        self.reason = reason


class TriggerRecorder:
    """Writes trigger bookkeeping through the entry store."""

    def __init__(self, store: SQLiteEntryStore):
        self.store = store

    def record_trigger(
        self,
        entry_id: str,
        session_id: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> TriggerReceipt:
        """
        Record one trigger of an entry, optionally scoped to a session.

        A trigger-once entry recorded for a session is excluded from that
        session's future selections until reset_triggers is called.
        """
        at = at or datetime.now(timezone.utc)
        try:
            receipt = self.store.increment_trigger(entry_id, session_id=session_id, at=at)
        except EntryNotFoundError:
            logger.warning("Trigger for unknown entry", entry_id=entry_id, session_id=session_id)
            raise TriggerPersistenceError(entry_id, "entry not found")
        except sqlite3.Error as e:
            logger.error("Trigger persistence failed", entry_id=entry_id, error=str(e))
            raise TriggerPersistenceError(entry_id, str(e)) from e

        logger.info(
            "Entry triggered",
            entry_id=entry_id,
            session_id=session_id,
            trigger_count=receipt.trigger_count,
        )
        return receipt
