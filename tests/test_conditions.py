"""Tests for the Condition Gate."""

from datetime import datetime

from lore_engine.gate.conditions import (
    evaluate_condition,
    is_eligible,
    parse_reputation_requirement,
)
from lore_engine.models.context import ActorRole, MatchContext, RelationshipRef
from lore_engine.models.entry import EntryCondition, Visibility, WorldInfoEntry


def _make_entry(visibility=Visibility.PUBLIC, conditions=None, **overrides) -> WorldInfoEntry:
    return WorldInfoEntry(
        id=overrides.pop("id", "wi_gate"),
        scenario_id="sc_gate",
        keywords=["时空门"],
        visibility=visibility,
        conditions=conditions or [],
        **overrides,
    )


def _condition(type_: str, requirement: str) -> EntryCondition:
    return EntryCondition(type=type_, requirement=requirement)


class TestVisibility:
    def test_public_is_eligible(self):
        assert is_eligible(_make_entry(), MatchContext()) is True

    def test_default_context(self):
        assert is_eligible(_make_entry()) is True

    def test_inactive_never_eligible(self):
        entry = _make_entry(is_active=False)
        gm = MatchContext(actor_role=ActorRole.ADMIN, is_owner=True)
        assert is_eligible(entry, gm) is False

    def test_private_requires_owner(self):
        entry = _make_entry(Visibility.PRIVATE)
        assert is_eligible(entry, MatchContext()) is False
        assert is_eligible(entry, MatchContext(is_owner=True)) is True

    def test_gm_only(self):
        entry = _make_entry(Visibility.GM_ONLY)
        assert is_eligible(entry, MatchContext(actor_role=ActorRole.PLAYER)) is False
        assert is_eligible(entry, MatchContext(actor_role=ActorRole.GAME_MASTER)) is True
        assert is_eligible(entry, MatchContext(actor_role=ActorRole.ADMIN)) is True

    def test_secret_requires_known_secret(self):
        entry = _make_entry(Visibility.SECRET, id="wi_secret")
        assert is_eligible(entry, MatchContext()) is False
        assert is_eligible(entry, MatchContext(secrets_known=["other"])) is False
        assert is_eligible(entry, MatchContext(secrets_known=["wi_secret"])) is True

    def test_secret_key_overrides_entry_id(self):
        entry = _make_entry(Visibility.SECRET, id="wi_secret", secret_key="royal_bloodline")
        assert is_eligible(entry, MatchContext(secrets_known=["wi_secret"])) is False
        assert is_eligible(entry, MatchContext(secrets_known=["royal_bloodline"])) is True

    def test_conditional_uses_conditions(self):
        entry = _make_entry(
            Visibility.CONDITIONAL,
            [_condition("location_current", "时空酒馆")],
        )
        assert is_eligible(entry, MatchContext(current_location="时空酒馆")) is True
        assert is_eligible(entry, MatchContext(current_location="王城")) is False
        assert is_eligible(entry, MatchContext()) is False


class TestConditions:
    def test_empty_conditions_vacuously_true(self):
        assert is_eligible(_make_entry(Visibility.CONDITIONAL, []), MatchContext()) is True

    def test_conditions_are_conjunctive(self):
        entry = _make_entry(
            Visibility.CONDITIONAL,
            [
                _condition("character_present", "苏晚"),
                _condition("item_owned", "怀表"),
            ],
        )
        both = MatchContext(present_characters=["苏晚"], owned_items=["怀表"])
        one = MatchContext(present_characters=["苏晚"])
        assert is_eligible(entry, both) is True
        assert is_eligible(entry, one) is False

    def test_conditions_apply_to_public_entries(self):
        entry = _make_entry(Visibility.PUBLIC, [_condition("event_occurred", "eclipse")])
        assert is_eligible(entry, MatchContext()) is False
        assert is_eligible(entry, MatchContext(current_events=["eclipse"])) is True

    def test_unknown_condition_fails_closed(self):
        condition = _condition("weather", "rain")
        assert evaluate_condition(condition, MatchContext()) is False
        entry = _make_entry(Visibility.CONDITIONAL, [condition])
        assert is_eligible(entry, MatchContext(current_events=["rain"])) is False

    def test_secret_known_condition(self):
        condition = _condition("secret", "hidden_door")
        assert evaluate_condition(condition, MatchContext(secrets_known=["hidden_door"])) is True
        assert evaluate_condition(condition, MatchContext()) is False

    def test_relationship_by_entity(self):
        condition = _condition("relationship_exists", "char_suwan")
        context = MatchContext(relationships=[RelationshipRef(entity_id="char_suwan", relationship="ally")])
        assert evaluate_condition(condition, context) is True
        assert evaluate_condition(condition, MatchContext()) is False

    def test_relationship_with_kind(self):
        context = MatchContext(relationships=[RelationshipRef(entity_id="char_suwan", relationship="ally")])
        assert evaluate_condition(_condition("relationship", "char_suwan:ally"), context) is True
        assert evaluate_condition(_condition("relationship", "char_suwan:rival"), context) is False


class TestReputationCondition:
    def test_parse_requirement(self):
        assert parse_reputation_requirement("thieves_guild>=50") == ("thieves_guild", 50.0)
        assert parse_reputation_requirement("盗贼公会: 20") == ("盗贼公会", 20.0)
        assert parse_reputation_requirement("lots") is None

    def test_threshold(self):
        condition = _condition("reputation_threshold", "thieves_guild>=50")
        assert evaluate_condition(condition, MatchContext(reputation={"thieves_guild": 60})) is True
        assert evaluate_condition(condition, MatchContext(reputation={"thieves_guild": 50})) is True
        assert evaluate_condition(condition, MatchContext(reputation={"thieves_guild": 40})) is False

    def test_missing_faction(self):
        condition = _condition("reputation", "thieves_guild>=0")
        assert evaluate_condition(condition, MatchContext()) is False

    def test_malformed_requirement_fails_closed(self):
        condition = _condition("reputation", "very high")
        assert evaluate_condition(condition, MatchContext(reputation={"very high": 100})) is False


class TestScheduleCondition:
    def test_inside_window(self):
        condition = _condition("time_schedule", "* 22-23 * * *")
        night = MatchContext(current_time=datetime(2024, 3, 1, 22, 30))
        assert evaluate_condition(condition, night) is True

    def test_outside_window(self):
        condition = _condition("schedule", "* 22-23 * * *")
        afternoon = MatchContext(current_time=datetime(2024, 3, 1, 14, 0))
        assert evaluate_condition(condition, afternoon) is False

    def test_no_clock(self):
        condition = _condition("time_schedule", "* * * * *")
        assert evaluate_condition(condition, MatchContext()) is False

    def test_invalid_expression_fails_closed(self):
        condition = _condition("time_schedule", "not a cron")
        context = MatchContext(current_time=datetime(2024, 3, 1, 22, 30))
        assert evaluate_condition(condition, context) is False
