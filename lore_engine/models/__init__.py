"""World Info engine data models."""

from lore_engine.models.config import EngineConfig
from lore_engine.models.context import ActorRole, MatchContext, RelationshipRef
from lore_engine.models.entry import (
    ConditionType,
    EntryCondition,
    EntryType,
    MatchType,
    SourceType,
    Visibility,
    WorldInfoEntry,
    parse_condition_type,
)
from lore_engine.models.match import (
    Diagnostic,
    DiagnosticSeverity,
    KeywordMatch,
    MatchReport,
    MatchResult,
    TriggerReceipt,
)

__all__ = [
    "ActorRole",
    "ConditionType",
    "Diagnostic",
    "DiagnosticSeverity",
    "EngineConfig",
    "EntryCondition",
    "EntryType",
    "KeywordMatch",
    "MatchContext",
    "MatchReport",
    "MatchResult",
    "MatchType",
    "RelationshipRef",
    "SourceType",
    "TriggerReceipt",
    "Visibility",
    "WorldInfoEntry",
    "parse_condition_type",
]
