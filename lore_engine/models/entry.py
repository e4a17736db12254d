"""World Info Entry — the atomic unit of injectable scenario knowledge."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class MatchType(str, Enum):
    EXACT = "exact"         # Delimited token match
    PARTIAL = "partial"     # Substring anywhere in the text
    REGEX = "regex"         # Each keyword is a regular expression
    SEMANTIC = "semantic"   # Approximate, edit-distance based


class EntryType(str, Enum):
    KNOWLEDGE = "knowledge"
    DESCRIPTION = "description"
    RULE = "rule"
    SECRET = "secret"
    RELATIONSHIP = "relationship"
    HISTORY = "history"
    PROPHECY = "prophecy"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"             # Owner of the scenario only
    CONDITIONAL = "conditional"     # Every condition must hold
    SECRET = "secret"               # Caller must know the secret
    GM_ONLY = "gm_only"             # Game master / admin only


class SourceType(str, Enum):
    MANUAL = "manual"
    AI_GENERATED = "ai_generated"
    IMPORTED = "imported"
    COLLABORATIVE = "collaborative"
    TEMPLATE = "template"


class ConditionType(str, Enum):
    CHARACTER_PRESENT = "character_present"
    LOCATION_CURRENT = "location_current"
    EVENT_OCCURRED = "event_occurred"
    ITEM_OWNED = "item_owned"
    RELATIONSHIP_EXISTS = "relationship_exists"
    SECRET_KNOWN = "secret_known"
    REPUTATION_THRESHOLD = "reputation_threshold"
    TIME_SCHEDULE = "time_schedule"
    UNKNOWN = "unknown"             # Authored by a newer client; never satisfied


_CONDITION_ALIASES: Dict[str, ConditionType] = {
    "character": ConditionType.CHARACTER_PRESENT,
    "location": ConditionType.LOCATION_CURRENT,
    "event": ConditionType.EVENT_OCCURRED,
    "item": ConditionType.ITEM_OWNED,
    "relationship": ConditionType.RELATIONSHIP_EXISTS,
    "secret": ConditionType.SECRET_KNOWN,
    "reputation": ConditionType.REPUTATION_THRESHOLD,
    "schedule": ConditionType.TIME_SCHEDULE,
}


def parse_condition_type(raw: Any) -> ConditionType:
    """Map an authored condition type string onto the known variants."""
    if isinstance(raw, ConditionType):
        return raw
    name = str(raw or "").strip().lower()
    if name in _CONDITION_ALIASES:
        return _CONDITION_ALIASES[name]
    try:
        return ConditionType(name)
    except ValueError:
        return ConditionType.UNKNOWN


class EntryCondition(BaseModel):
    """A single eligibility requirement checked against the runtime context."""

    type: ConditionType
    requirement: str
    description: Optional[str] = None
    raw_type: Optional[str] = None          # As authored, kept for diagnostics

    @model_validator(mode="before")
    @classmethod
    def _resolve_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and "type" in data:
            data = dict(data)
            raw = data["type"]
            if data.get("raw_type") is None:
                data["raw_type"] = raw.value if isinstance(raw, ConditionType) else str(raw)
            data["type"] = parse_condition_type(raw)
        return data


class WorldInfoEntry(BaseModel):
    """A lorebook entry belonging to one scenario."""

    id: str
    scenario_id: str

    # CONTENT
    title: str = ""
    content: str = ""
    category: str = "general"
    entry_type: EntryType = EntryType.KNOWLEDGE

    # MATCHING
    keywords: List[str] = []
    match_type: MatchType = MatchType.EXACT
    case_sensitive: bool = False

    # RANKING / INJECTION
    priority: int = 0
    insert_depth: int = Field(ge=0, default=4)
    probability: float = Field(ge=0.0, le=1.0, default=1.0)
    display_order: int = 0

    # LIFECYCLE
    is_active: bool = True
    trigger_once: bool = False
    constant: bool = False                  # Injected whenever eligible
    exclude_recursion: bool = False         # Never activated by other entries' content

    # VISIBILITY
    visibility: Visibility = Visibility.PUBLIC
    conditions: List[EntryCondition] = []
    secret_key: Optional[str] = None        # Defaults to the entry id

    related_entities: List[str] = []
    source_type: SourceType = SourceType.MANUAL

    # RUNTIME STATE
    last_triggered_at: Optional[datetime] = None
    trigger_count: int = Field(ge=0, default=0)

    metadata: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("match_type", mode="before")
    @classmethod
    def _accept_contains_alias(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() == "contains":
            return MatchType.PARTIAL
        return value

    @property
    def is_exhausted(self) -> bool:
        """A trigger-once entry that has already fired in its scope."""
        return self.trigger_once and self.trigger_count > 0

    @property
    def effective_secret_key(self) -> str:
        return self.secret_key or self.id
