"""Tests for the Trigger Recorder."""

from datetime import datetime, timezone

import pytest

from lore_engine.models.context import MatchContext
from lore_engine.models.entry import WorldInfoEntry
from lore_engine.selection.ranker import select
from lore_engine.store.entries import SQLiteEntryStore
from lore_engine.triggers.recorder import TriggerPersistenceError, TriggerRecorder


def _make_entry(entry_id: str = "wi_once", **overrides) -> WorldInfoEntry:
    return WorldInfoEntry(
        id=entry_id,
        scenario_id="sc_rec",
        keywords=["怀表"],
        **overrides,
    )


class TestTriggerRecorder:
    def setup_method(self):
        self.store = SQLiteEntryStore(db_path=":memory:")
        self.recorder = TriggerRecorder(self.store)

    def teardown_method(self):
        self.store.close()

    def test_record_increments_and_stamps(self):
        self.store.add_entry(_make_entry())
        at = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)

        receipt = self.recorder.record_trigger("wi_once", at=at)
        assert receipt.trigger_count == 1
        assert receipt.triggered_at == at

        entry = self.store.get_entry("wi_once")
        assert entry.trigger_count == 1
        assert entry.last_triggered_at == at

    def test_repeated_records_accumulate(self):
        self.store.add_entry(_make_entry())
        self.recorder.record_trigger("wi_once")
        receipt = self.recorder.record_trigger("wi_once")
        assert receipt.trigger_count == 2

    def test_unknown_entry(self):
        with pytest.raises(TriggerPersistenceError) as exc_info:
            self.recorder.record_trigger("ghost")
        assert exc_info.value.entry_id == "ghost"
        assert exc_info.value.reason == "entry not found"

    def test_store_failure_surfaces(self):
        self.store.add_entry(_make_entry())
        self.store.close()

        with pytest.raises(TriggerPersistenceError) as exc_info:
            self.recorder.record_trigger("wi_once")
        assert exc_info.value.entry_id == "wi_once"

    def test_trigger_once_exhausts_entry(self):
        self.store.add_entry(_make_entry(trigger_once=True))
        text = "他掏出了怀表"

        assert [r.entry_id for r in select(self.store.get_entries("sc_rec"), text)] == ["wi_once"]
        self.recorder.record_trigger("wi_once")
        assert select(self.store.get_entries("sc_rec"), text) == []

    def test_trigger_once_is_session_scoped(self):
        self.store.add_entry(_make_entry(trigger_once=True))
        text = "他掏出了怀表"

        self.recorder.record_trigger("wi_once", session_id="s1")

        s1 = select(self.store.get_entries("sc_rec", session_id="s1"), text, MatchContext(session_id="s1"))
        s2 = select(self.store.get_entries("sc_rec", session_id="s2"), text, MatchContext(session_id="s2"))
        assert s1 == []
        assert [r.entry_id for r in s2] == ["wi_once"]

    def test_reset_rearms(self):
        self.store.add_entry(_make_entry(trigger_once=True))
        self.recorder.record_trigger("wi_once", session_id="s1")
        self.store.reset_triggers("wi_once", session_id="s1")

        entries = self.store.get_entries("sc_rec", session_id="s1")
        assert [r.entry_id for r in select(entries, "他掏出了怀表")] == ["wi_once"]
