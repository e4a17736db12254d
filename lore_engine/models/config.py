"""Engine configuration."""

from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    """Tunables shared by the matcher and ranker."""

    semantic_threshold: float = Field(ge=0.0, le=1.0, default=0.75)
    regex_confidence: float = Field(ge=0.0, le=1.0, default=0.9)
    context_window_chars: int = Field(ge=0, default=50)
    max_recursion_depth: int = Field(ge=0, default=0)
