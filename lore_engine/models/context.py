"""Match Context — the runtime state a conversation turn is evaluated against."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel


class ActorRole(str, Enum):
    PLAYER = "player"
    GAME_MASTER = "game_master"
    ADMIN = "admin"


class RelationshipRef(BaseModel):
    """A relationship the acting character has with another entity."""

    entity_id: str
    entity_type: str = "character"
    relationship: str = ""                  # e.g., "ally", "rival"


class MatchContext(BaseModel):
    """
    Caller-supplied context for eligibility checks.

    Every field is optional; an absent field means "no information" and
    never satisfies a condition that refers to it.
    """

    current_location: Optional[str] = None
    present_characters: List[str] = []
    current_events: List[str] = []
    owned_items: List[str] = []
    relationships: List[RelationshipRef] = []
    secrets_known: List[str] = []
    reputation: Dict[str, float] = {}

    # Resolved by the caller; the engine never re-derives ownership
    actor_role: ActorRole = ActorRole.PLAYER
    is_owner: bool = False

    session_id: Optional[str] = None        # Scope for trigger-once bookkeeping
    current_time: Optional[datetime] = None  # In-story clock for schedule conditions
