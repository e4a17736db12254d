"""
Condition Gate — eligibility of an entry independent of text matching.

Behavioral Contract:
- Accepts a WorldInfoEntry and the caller's MatchContext
- Inactive entries are never eligible
- Visibility is checked first, then every condition (conjunctive; none = pass)
- Unknown condition types and malformed requirements fail closed
- Pure: never raises on bad entry data, never performs I/O
"""

import re
from typing import Callable, Dict, Optional, Tuple

from croniter import croniter

from lore_engine.models.context import ActorRole, MatchContext
from lore_engine.models.entry import (
    ConditionType,
    EntryCondition,
    Visibility,
    WorldInfoEntry,
)

_REPUTATION_REQUIREMENT = re.compile(
    r"^\s*(?P<faction>.+?)\s*(?:>=|:)\s*(?P<threshold>-?\d+(?:\.\d+)?)\s*$"
)

_PRIVILEGED_ROLES = (ActorRole.GAME_MASTER, ActorRole.ADMIN)


def parse_reputation_requirement(requirement: str) -> Optional[Tuple[str, float]]:
    """Parse "faction>=N" or "faction:N". Returns None when malformed."""
    found = _REPUTATION_REQUIREMENT.match(requirement or "")
    if not found:
        return None
    return found.group("faction"), float(found.group("threshold"))


def is_valid_schedule(expression: str) -> bool:
    return bool(expression) and croniter.is_valid(expression)


def _check_character_present(condition: EntryCondition, context: MatchContext) -> bool:
    return condition.requirement in context.present_characters


def _check_location(condition: EntryCondition, context: MatchContext) -> bool:
    return context.current_location is not None and context.current_location == condition.requirement


def _check_event(condition: EntryCondition, context: MatchContext) -> bool:
    return condition.requirement in context.current_events


def _check_item(condition: EntryCondition, context: MatchContext) -> bool:
    return condition.requirement in context.owned_items


def _check_relationship(condition: EntryCondition, context: MatchContext) -> bool:
    """Requirement is an entity id, optionally "entity_id:relationship"."""
    entity_id, _, relationship = condition.requirement.partition(":")
    for rel in context.relationships:
        if rel.entity_id != entity_id:
            continue
        if not relationship or rel.relationship == relationship:
            return True
    return False


def _check_secret(condition: EntryCondition, context: MatchContext) -> bool:
    return condition.requirement in context.secrets_known


def _check_reputation(condition: EntryCondition, context: MatchContext) -> bool:
    parsed = parse_reputation_requirement(condition.requirement)
    if parsed is None:
        return False
    faction, threshold = parsed
    standing = context.reputation.get(faction)
    return standing is not None and standing >= threshold


def _check_schedule(condition: EntryCondition, context: MatchContext) -> bool:
    """The in-story clock must fall inside the cron window."""
    if context.current_time is None:
        return False
    try:
        return bool(croniter.match(condition.requirement, context.current_time))
    except (ValueError, KeyError):
        # Invalid cron expression, never satisfied
        return False


_CONDITION_CHECKS: Dict[ConditionType, Callable[[EntryCondition, MatchContext], bool]] = {
    ConditionType.CHARACTER_PRESENT: _check_character_present,
    ConditionType.LOCATION_CURRENT: _check_location,
    ConditionType.EVENT_OCCURRED: _check_event,
    ConditionType.ITEM_OWNED: _check_item,
    ConditionType.RELATIONSHIP_EXISTS: _check_relationship,
    ConditionType.SECRET_KNOWN: _check_secret,
    ConditionType.REPUTATION_THRESHOLD: _check_reputation,
    ConditionType.TIME_SCHEDULE: _check_schedule,
}


def evaluate_condition(condition: EntryCondition, context: MatchContext) -> bool:
    """Evaluate a single condition. Unknown types are never satisfied."""
    check_fn = _CONDITION_CHECKS.get(condition.type)
    if check_fn is None:
        return False
    return check_fn(condition, context)


def check_visibility(entry: WorldInfoEntry, context: MatchContext) -> bool:
    if entry.visibility == Visibility.PUBLIC:
        return True
    if entry.visibility == Visibility.PRIVATE:
        return context.is_owner
    if entry.visibility == Visibility.GM_ONLY:
        return context.actor_role in _PRIVILEGED_ROLES
    if entry.visibility == Visibility.SECRET:
        return entry.effective_secret_key in context.secrets_known
    if entry.visibility == Visibility.CONDITIONAL:
        # Gated by the condition list alone
        return True
    return False


def check_conditions(entry: WorldInfoEntry, context: MatchContext) -> bool:
    return all(evaluate_condition(c, context) for c in entry.conditions)


def is_eligible(entry: WorldInfoEntry, context: Optional[MatchContext] = None) -> bool:
    """Whether the entry may be injected for this caller, ignoring the text."""
    if not entry.is_active:
        return False
    context = context or MatchContext()
    return check_visibility(entry, context) and check_conditions(entry, context)
