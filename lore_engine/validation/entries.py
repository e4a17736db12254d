"""
Entry validation for authoring and admin tooling.

Problems found here never stop a match pass; the Matcher and Condition Gate
fail closed on the same data. This module only explains why an entry will
not fire.
"""

import re
from typing import Iterable, List

from lore_engine.gate.conditions import is_valid_schedule, parse_reputation_requirement
from lore_engine.matching.matcher import compile_regex_keyword
from lore_engine.models.entry import ConditionType, MatchType, Visibility, WorldInfoEntry
from lore_engine.models.match import Diagnostic, DiagnosticSeverity


def _warning(entry: WorldInfoEntry, code: str, message: str) -> Diagnostic:
    return Diagnostic(
        entry_id=entry.id,
        severity=DiagnosticSeverity.WARNING,
        code=code,
        message=message,
    )


def _error(entry: WorldInfoEntry, code: str, message: str) -> Diagnostic:
    return Diagnostic(
        entry_id=entry.id,
        severity=DiagnosticSeverity.ERROR,
        code=code,
        message=message,
    )


def validate_entry(entry: WorldInfoEntry) -> List[Diagnostic]:
    """Collect every configuration problem on one entry."""
    diagnostics: List[Diagnostic] = []

    if not entry.constant and not [k for k in entry.keywords if k]:
        diagnostics.append(_warning(
            entry, "empty_keywords",
            "Entry has no keywords and is not constant; it can never match text.",
        ))

    if entry.match_type == MatchType.REGEX:
        for keyword in entry.keywords:
            try:
                compile_regex_keyword(keyword, entry.case_sensitive)
            except re.error as e:
                diagnostics.append(_error(
                    entry, "invalid_regex",
                    f"Keyword {keyword!r} is not a valid regular expression: {e}",
                ))

    for condition in entry.conditions:
        if condition.type == ConditionType.UNKNOWN:
            diagnostics.append(_warning(
                entry, "unknown_condition",
                f"Condition type {condition.raw_type!r} is not supported and is never satisfied.",
            ))
        elif condition.type == ConditionType.REPUTATION_THRESHOLD:
            if parse_reputation_requirement(condition.requirement) is None:
                diagnostics.append(_error(
                    entry, "invalid_reputation_requirement",
                    f"Reputation requirement {condition.requirement!r} must look like 'faction>=50'.",
                ))
        elif condition.type == ConditionType.TIME_SCHEDULE:
            if not is_valid_schedule(condition.requirement):
                diagnostics.append(_error(
                    entry, "invalid_schedule",
                    f"Schedule {condition.requirement!r} is not a valid cron expression.",
                ))

    if entry.visibility == Visibility.CONDITIONAL and not entry.conditions:
        diagnostics.append(_warning(
            entry, "conditional_without_conditions",
            "Visibility is conditional but no conditions are set; the entry behaves as public.",
        ))

    return diagnostics


def validate_entries(entries: Iterable[WorldInfoEntry]) -> List[Diagnostic]:
    diagnostics: List[Diagnostic] = []
    for entry in entries:
        diagnostics.extend(validate_entry(entry))
    return diagnostics
