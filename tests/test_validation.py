"""Tests for entry validation diagnostics."""

from lore_engine.models.entry import EntryCondition, MatchType, Visibility, WorldInfoEntry
from lore_engine.models.match import DiagnosticSeverity
from lore_engine.validation.entries import validate_entries, validate_entry


def _make_entry(entry_id: str = "wi_val", **overrides) -> WorldInfoEntry:
    return WorldInfoEntry(
        id=entry_id,
        scenario_id="sc_val",
        keywords=overrides.pop("keywords", ["时空门"]),
        **overrides,
    )


def _codes(diagnostics):
    return [d.code for d in diagnostics]


class TestValidateEntry:
    def test_clean_entry(self):
        assert validate_entry(_make_entry()) == []

    def test_empty_keywords(self):
        diagnostics = validate_entry(_make_entry(keywords=[]))
        assert _codes(diagnostics) == ["empty_keywords"]
        assert diagnostics[0].severity == DiagnosticSeverity.WARNING

    def test_blank_keywords_count_as_empty(self):
        assert _codes(validate_entry(_make_entry(keywords=["", ""]))) == ["empty_keywords"]

    def test_constant_entry_needs_no_keywords(self):
        assert validate_entry(_make_entry(keywords=[], constant=True)) == []

    def test_invalid_regex(self):
        entry = _make_entry(keywords=["[unclosed", "时空.门"], match_type=MatchType.REGEX)
        diagnostics = validate_entry(entry)
        assert _codes(diagnostics) == ["invalid_regex"]
        assert diagnostics[0].severity == DiagnosticSeverity.ERROR
        assert "[unclosed" in diagnostics[0].message

    def test_regex_syntax_ignored_for_other_match_types(self):
        entry = _make_entry(keywords=["[unclosed"], match_type=MatchType.PARTIAL)
        assert validate_entry(entry) == []

    def test_unknown_condition(self):
        entry = _make_entry(conditions=[EntryCondition(type="weather", requirement="rain")])
        diagnostics = validate_entry(entry)
        assert _codes(diagnostics) == ["unknown_condition"]
        assert "weather" in diagnostics[0].message

    def test_malformed_reputation(self):
        entry = _make_entry(conditions=[EntryCondition(type="reputation", requirement="high")])
        assert _codes(validate_entry(entry)) == ["invalid_reputation_requirement"]

    def test_invalid_schedule(self):
        entry = _make_entry(conditions=[EntryCondition(type="time_schedule", requirement="whenever")])
        assert _codes(validate_entry(entry)) == ["invalid_schedule"]

    def test_valid_conditions(self):
        entry = _make_entry(conditions=[
            EntryCondition(type="reputation", requirement="thieves_guild>=50"),
            EntryCondition(type="time_schedule", requirement="0 22 * * *"),
        ])
        assert validate_entry(entry) == []

    def test_conditional_without_conditions(self):
        entry = _make_entry(visibility=Visibility.CONDITIONAL)
        assert _codes(validate_entry(entry)) == ["conditional_without_conditions"]


class TestValidateEntries:
    def test_collects_across_entries(self):
        entries = [
            _make_entry("ok"),
            _make_entry("empty", keywords=[]),
            _make_entry("bad_regex", keywords=["("], match_type=MatchType.REGEX),
        ]
        diagnostics = validate_entries(entries)
        assert [(d.entry_id, d.code) for d in diagnostics] == [
            ("empty", "empty_keywords"),
            ("bad_regex", "invalid_regex"),
        ]
