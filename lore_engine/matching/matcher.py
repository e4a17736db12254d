"""
Keyword Matcher — decides whether an entry's keywords hit a text window.

Behavioral Contract:
- Pure: no I/O, no mutation, deterministic for a given (entry, text, config)
- An entry matches if at least one keyword matches under its match type
- Every matching keyword is reported, in entry order, without duplicates
- A bad regex keyword never matches and never raises
"""

import re
import unicodedata
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from lore_engine.matching.similarity import best_window_similarity
from lore_engine.models.config import EngineConfig
from lore_engine.models.entry import MatchType, WorldInfoEntry
from lore_engine.models.match import KeywordMatch

logger = structlog.get_logger(__name__)

# /pattern/flags is a literal only with at least one flag; "/usr/" stays a plain pattern
_REGEX_LITERAL = re.compile(r"^/(?P<body>.+)/(?P<flags>[imsx]+)$", re.DOTALL)

_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}

# A keyword hit: (confidence, offset of the hit in the text)
KeywordHit = Optional[Tuple[float, int]]


def compile_regex_keyword(keyword: str, case_sensitive: bool) -> re.Pattern:
    """
    Compile a regex keyword. Accepts a bare pattern or a /pattern/flags literal
    with one or more of the flags i, m, s, x.

    Raises re.error when the pattern does not compile.
    """
    flags = 0 if case_sensitive else re.IGNORECASE
    literal = _REGEX_LITERAL.match(keyword)
    if literal:
        for flag in literal.group("flags"):
            flags |= _REGEX_FLAGS[flag]
        return re.compile(literal.group("body"), flags)
    return re.compile(keyword, flags)


@lru_cache(maxsize=1024)
def _cached_pattern(keyword: str, case_sensitive: bool) -> Optional[re.Pattern]:
    try:
        return compile_regex_keyword(keyword, case_sensitive)
    except re.error as e:
        logger.warning("Invalid regex keyword ignored", keyword=keyword, error=str(e))
        return None


def _is_cjk(ch: str) -> bool:
    return unicodedata.east_asian_width(ch) in ("W", "F")


def _is_delimited_word_char(ch: str) -> bool:
    """Characters that need a boundary next to them. CJK scripts have none."""
    return (ch.isalnum() or ch == "_") and not _is_cjk(ch)


def _find_delimited(keyword: str, text: str) -> int:
    """Offset of the first delimited occurrence of keyword in text, or -1."""
    needs_left = _is_delimited_word_char(keyword[0])
    needs_right = _is_delimited_word_char(keyword[-1])
    start = text.find(keyword)
    while start >= 0:
        end = start + len(keyword)
        left_ok = not needs_left or start == 0 or not _is_delimited_word_char(text[start - 1])
        right_ok = not needs_right or end == len(text) or not _is_delimited_word_char(text[end])
        if left_ok and right_ok:
            return start
        start = text.find(keyword, start + 1)
    return -1


def _match_exact(keyword: str, text: str, entry: WorldInfoEntry, config: EngineConfig) -> KeywordHit:
    offset = _find_delimited(keyword, text)
    return (1.0, offset) if offset >= 0 else None


def _match_partial(keyword: str, text: str, entry: WorldInfoEntry, config: EngineConfig) -> KeywordHit:
    offset = text.find(keyword)
    return (1.0, offset) if offset >= 0 else None


def _match_regex(keyword: str, text: str, entry: WorldInfoEntry, config: EngineConfig) -> KeywordHit:
    pattern = _cached_pattern(keyword, entry.case_sensitive)
    if pattern is None:
        return None
    found = pattern.search(text)
    return (config.regex_confidence, found.start()) if found else None


def _match_semantic(keyword: str, text: str, entry: WorldInfoEntry, config: EngineConfig) -> KeywordHit:
    score, offset = best_window_similarity(keyword, text)
    if offset is not None and score >= config.semantic_threshold:
        return (score, offset)
    return None


def _fold_case(text: str) -> Tuple[str, Optional[List[int]]]:
    """
    Lower-case text. When folding changes the length (e.g. "\u0130"), also
    return the original index of every folded character.
    """
    folded = text.lower()
    if len(folded) == len(text):
        return folded, None
    origin: List[int] = []
    for index, ch in enumerate(text):
        origin.extend([index] * len(ch.lower()))
    return folded, origin


_MATCHERS: Dict[MatchType, Callable[[str, str, WorldInfoEntry, EngineConfig], KeywordHit]] = {
    MatchType.EXACT: _match_exact,
    MatchType.PARTIAL: _match_partial,
    MatchType.REGEX: _match_regex,
    MatchType.SEMANTIC: _match_semantic,
}


def match_entry(
    entry: WorldInfoEntry,
    text: str,
    config: Optional[EngineConfig] = None,
) -> KeywordMatch:
    """Match one entry's keywords against the conversation text window."""
    config = config or EngineConfig()
    if not entry.keywords or not text:
        return KeywordMatch(matched=False)

    fold = not entry.case_sensitive and entry.match_type != MatchType.REGEX
    search_text, origin = _fold_case(text) if fold else (text, None)
    matcher = _MATCHERS[entry.match_type]

    matched_keywords: List[str] = []
    best_confidence = 0.0
    first_offset: Optional[int] = None

    for keyword in entry.keywords:
        if not keyword or keyword in matched_keywords:
            continue
        hit = matcher(keyword.lower() if fold else keyword, search_text, entry, config)
        if hit is None:
            continue
        confidence, offset = hit
        matched_keywords.append(keyword)
        best_confidence = max(best_confidence, confidence)
        if first_offset is None or offset < first_offset:
            first_offset = offset

    if not matched_keywords:
        return KeywordMatch(matched=False)
    if origin is not None:
        first_offset = origin[first_offset]

    return KeywordMatch(
        matched=True,
        matched_keywords=matched_keywords,
        confidence=min(1.0, best_confidence),
        first_offset=first_offset,
    )
