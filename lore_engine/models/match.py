"""Match results, diagnostics and reports produced per request. Never persisted."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from lore_engine.models.entry import WorldInfoEntry


class KeywordMatch(BaseModel):
    """Outcome of matching one entry's keywords against a text window."""

    matched: bool
    matched_keywords: List[str] = []
    confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    first_offset: Optional[int] = None      # Earliest hit, for the excerpt


class MatchResult(BaseModel):
    """One selected entry, in final ranked order."""

    entry_id: str
    entry: WorldInfoEntry                   # Snapshot; the engine never mutates it
    matched_keywords: List[str] = []
    confidence: float = Field(ge=0.0, le=1.0)
    insert_position: int                    # entry.insert_depth, passed through as-is
    context: str = ""                       # Excerpt of the triggering text
    recursion_level: int = 0                # 0 = matched the conversation text directly


class DiagnosticSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


class Diagnostic(BaseModel):
    """A configuration problem found on an entry. Collected, never raised."""

    entry_id: str
    severity: DiagnosticSeverity
    code: str                               # e.g., "invalid_regex"
    message: str


class MatchReport(BaseModel):
    """Authoring-time summary of how a scenario's entries react to sample text."""

    scenario_id: str
    matches: List[MatchResult] = []
    coverage: float = 0.0                   # Percent of active entries matched
    suggestions: List[str] = []
    diagnostics: List[Diagnostic] = []
    generated_at: datetime


class TriggerReceipt(BaseModel):
    """Persisted trigger state after a successful record_trigger call."""

    entry_id: str
    session_id: Optional[str] = None
    trigger_count: int                      # Scenario-wide count
    session_trigger_count: Optional[int] = None
    triggered_at: datetime
