"""
Ranker / Selector — the engine's primary entry point.

Combines the Condition Gate and the Matcher across a scenario's entries and
returns the ranked list of entries to inject.

Behavioral Contract:
- Reads a snapshot of entries; never mutates them
- Skips inactive, exhausted trigger-once and ineligible entries
- Applies each entry's probability as a deterministic weighted draw
- Orders by priority desc, confidence desc, display_order asc, id asc
- Identical inputs always produce identical output
"""

import hashlib
from typing import Dict, Iterable, List, Optional

import structlog

from lore_engine.gate.conditions import is_eligible
from lore_engine.matching.matcher import match_entry
from lore_engine.models.config import EngineConfig
from lore_engine.models.context import MatchContext
from lore_engine.models.entry import WorldInfoEntry
from lore_engine.models.match import KeywordMatch, MatchResult

logger = structlog.get_logger(__name__)


class InvalidSelectionRequest(ValueError):
    """Raised when select() is called with arguments that violate its contract."""
    pass


def _text_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def probability_draw(entry_id: str, text_digest: str) -> float:
    """
    Reproducible pseudo-random draw in [0, 1) keyed by entry and request text.

    The same entry facing the same text always draws the same number, so
    probability gating never makes identical requests diverge.
    """
    seed = f"{entry_id}\x00{text_digest}".encode("utf-8")
    value = int.from_bytes(hashlib.sha256(seed).digest()[:8], "big")
    return value / float(1 << 64)


def passes_probability(entry: WorldInfoEntry, text_digest: str) -> bool:
    if entry.probability >= 1.0:
        return True
    if entry.probability <= 0.0:
        return False
    return probability_draw(entry.id, text_digest) < entry.probability


def _excerpt(text: str, offset: Optional[int], window: int) -> str:
    if offset is None:
        return ""
    return text[max(0, offset - window):offset + window]


def _rank_key(result: MatchResult):
    return (
        -result.entry.priority,
        -result.confidence,
        result.entry.display_order,
        result.entry_id,
    )


def _is_candidate(entry: WorldInfoEntry, context: MatchContext) -> bool:
    if not entry.is_active:
        return False
    if entry.is_exhausted:
        return False
    return is_eligible(entry, context)


def _build_result(
    entry: WorldInfoEntry,
    keyword_match: KeywordMatch,
    text: str,
    config: EngineConfig,
    recursion_level: int,
) -> MatchResult:
    return MatchResult(
        entry_id=entry.id,
        entry=entry,
        matched_keywords=list(keyword_match.matched_keywords),
        confidence=keyword_match.confidence,
        insert_position=entry.insert_depth,
        context=_excerpt(text, keyword_match.first_offset, config.context_window_chars),
        recursion_level=recursion_level,
    )


def select(
    entries: Optional[Iterable[WorldInfoEntry]],
    text: Optional[str],
    context: Optional[MatchContext] = None,
    max_results: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> List[MatchResult]:
    """
    Select and rank the entries to inject for one conversation turn.

    `max_results=None` returns every surviving match. Raises
    InvalidSelectionRequest for a missing entry set or text, or a negative
    result limit.
    """
    if entries is None:
        raise InvalidSelectionRequest("entries must be provided (use an empty list for none)")
    if text is None:
        raise InvalidSelectionRequest("text must be provided (use an empty string for none)")
    if max_results is not None and max_results < 0:
        raise InvalidSelectionRequest(f"max_results must be >= 0, got {max_results}")

    config = config or EngineConfig()
    context = context or MatchContext()
    digest = _text_digest(text)

    candidates = [e for e in entries if _is_candidate(e, context)]
    selected: Dict[str, MatchResult] = {}

    for entry in candidates:
        if entry.id in selected:
            continue
        if entry.constant:
            keyword_match = KeywordMatch(matched=True, confidence=1.0)
        else:
            keyword_match = match_entry(entry, text, config)
            if not keyword_match.matched:
                continue
        if not passes_probability(entry, digest):
            continue
        selected[entry.id] = _build_result(entry, keyword_match, text, config, 0)

    # Recursive scanning: activated content can activate further entries
    frontier = [r for r in selected.values() if r.entry.content]
    for level in range(1, config.max_recursion_depth + 1):
        if not frontier:
            break
        scan_text = "\n".join(r.entry.content for r in frontier)
        frontier = []
        for entry in candidates:
            if entry.id in selected or entry.exclude_recursion or entry.constant:
                continue
            keyword_match = match_entry(entry, scan_text, config)
            if not keyword_match.matched or not passes_probability(entry, digest):
                continue
            result = _build_result(entry, keyword_match, scan_text, config, level)
            selected[entry.id] = result
            frontier.append(result)

    ranked = sorted(selected.values(), key=_rank_key)
    if max_results is not None:
        ranked = ranked[:max_results]

    logger.debug(
        "World info selection complete",
        candidates=len(candidates),
        matched=len(selected),
        returned=len(ranked),
    )
    return ranked
