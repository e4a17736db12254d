"""
World Info Engine — wires the entry store, selector and trigger recorder.

One instance per process or per request, constructed by the caller. The
engine holds no global state; its only cache is the store's snapshot cache.

Per turn:
  store snapshot → Condition Gate + Matcher (per entry) → Ranker → caller
  injects → caller records triggers for the entries it used
"""

import time
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from lore_engine.models.config import EngineConfig
from lore_engine.models.context import MatchContext
from lore_engine.models.match import MatchReport, MatchResult, TriggerReceipt
from lore_engine.selection.ranker import select
from lore_engine.store.entries import SQLiteEntryStore
from lore_engine.triggers.recorder import TriggerRecorder
from lore_engine.validation.entries import validate_entries

logger = structlog.get_logger(__name__)

_LOW_CONFIDENCE = 0.5


def _matching_suggestions(matches: List[MatchResult]) -> List[str]:
    """Advice for authors based on how a sample text matched."""
    suggestions: List[str] = []
    if not matches:
        suggestions.append("Add more general keywords to improve the match rate.")
        suggestions.append("Consider partial or regex matching for entries that never fire.")
    elif len(matches) < 3:
        suggestions.append("Add more entries related to this part of the story.")
        suggestions.append("Lower the probability of some entries to reduce redundant injections.")

    if any(m.confidence < _LOW_CONFIDENCE for m in matches):
        suggestions.append("Some entries match with low confidence; refine their keywords.")
    return suggestions


class WorldInfoEngine:
    """Finds the World Info entries to inject for a conversation turn."""

    def __init__(
        self,
        store: SQLiteEntryStore,
        config: Optional[EngineConfig] = None,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.recorder = TriggerRecorder(store)

    def find_matching_entries(
        self,
        scenario_id: str,
        text: str,
        context: Optional[MatchContext] = None,
        max_results: Optional[int] = None,
    ) -> List[MatchResult]:
        """
        Ranked entries of a scenario that apply to the text.

        Entries are read once, so edits made during the pass show up on the
        next call. Trigger-once state is scoped to context.session_id.
        """
        context = context or MatchContext()
        started = time.monotonic()

        entries = self.store.get_entries(scenario_id, session_id=context.session_id)
        results = select(entries, text, context, max_results=max_results, config=self.config)

        logger.info(
            "Matched world info entries",
            scenario_id=scenario_id,
            text_length=len(text) if text is not None else 0,
            entries_processed=len(entries),
            matches_found=len(results),
            match_time_ms=round((time.monotonic() - started) * 1000, 2),
        )
        return results

    def record_trigger(
        self,
        entry_id: str,
        session_id: Optional[str] = None,
    ) -> TriggerReceipt:
        """Commit that the caller injected this entry. See TriggerRecorder."""
        return self.recorder.record_trigger(entry_id, session_id=session_id)

    def check_keyword_matching(
        self,
        scenario_id: str,
        text: str,
        context: Optional[MatchContext] = None,
    ) -> MatchReport:
        """Dry-run a sample text for authors: coverage, advice, diagnostics."""
        matches = self.find_matching_entries(scenario_id, text, context)
        total = self.store.count_active(scenario_id)
        coverage = (len(matches) / total) * 100 if total > 0 else 0.0
        all_entries = self.store.get_entries(scenario_id, include_inactive=True)

        return MatchReport(
            scenario_id=scenario_id,
            matches=matches,
            coverage=coverage,
            suggestions=_matching_suggestions(matches),
            diagnostics=validate_entries(all_entries),
            generated_at=datetime.now(timezone.utc),
        )
