"""Configuration schema using Pydantic."""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from contextprune.models import PruningStrategy, ScoringProfile, SummaryLevel
from contextprune.profiles import get_profile, get_strategy


class PruningConfig(BaseModel):
    """Pruning pass configuration."""
    default_strategy: Literal["aggressive", "balanced", "conservative"] = "balanced"
    max_tokens: int | None = Field(default=None, ge=1000, description="Overrides the strategy budget")
    summary_level: SummaryLevel = SummaryLevel.SESSION
    enable_undo: bool = True
    max_undo_history: int = Field(default=5, ge=1, le=100)
    auto_trigger_threshold: int = Field(default=150_000, ge=10_000, description="Token count that suggests pruning")


class ScoringConfig(BaseModel):
    """Importance scoring configuration."""
    profile: str = "technical"
    recency_decay: float = Field(default=0.95, gt=0.0, lt=1.0, description="Per-minute recency decay")
    coherence_window: int = Field(default=5, ge=1, le=50)


class Config(BaseSettings):
    """Root configuration for contextprune."""
    model_config = SettingsConfigDict(env_prefix="CONTEXTPRUNE_", env_nested_delimiter="__")

    pruning: PruningConfig = Field(default_factory=PruningConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    def build_strategy(self, name: str | None = None) -> PruningStrategy:
        """Strategy by name (default from config) with the max-token override applied."""
        return get_strategy(name or self.pruning.default_strategy, self.pruning.max_tokens)

    def build_profile(self) -> ScoringProfile:
        return get_profile(self.scoring.profile)
