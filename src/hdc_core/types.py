"""
hdc_core/types.py - Pydantic type definitions for the vector algebras

Uses Pydantic v2 for validation. Validation failures are surfaced as
ConfigError so callers only deal with the engine's own error taxonomy.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ConfigError

StrategyName = Literal["dense-binary", "sparse-polynomial", "metric-affine", "exact"]

# =============================================================================
# THRESHOLDS
# =============================================================================

class Thresholds(BaseModel):
    """Similarity bands for one strategy.

    Bands are ordered: strong >= good >= weak >= baseline. A decoded
    similarity below ``weak`` is treated as a failed match.
    """

    baseline: float = Field(ge=0.0, le=1.0, description="Expected similarity of unrelated vectors")
    strong: float = Field(ge=0.0, le=1.0)
    good: float = Field(ge=0.0, le=1.0)
    weak: float = Field(ge=0.0, le=1.0)
    ambiguity_margin: float = Field(default=0.05, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_order(self) -> "Thresholds":
        if not (self.strong >= self.good >= self.weak >= self.baseline):
            raise ValueError(
                f"Thresholds must satisfy strong >= good >= weak >= baseline, "
                f"got {self.strong}/{self.good}/{self.weak}/{self.baseline}"
            )
        return self

    def level(self, sim: float) -> str:
        """Classify a similarity into strong/good/weak/failed."""
        if sim >= self.strong:
            return "strong"
        if sim >= self.good:
            return "good"
        if sim >= self.weak:
            return "weak"
        return "failed"

    @classmethod
    def relative_to(cls, baseline: float, strong: float = 0.80, good: float = 0.65,
                    weak: float = 0.55) -> "Thresholds":
        """Map dense-scale bands (baseline 0.5) onto another baseline.

        t' = b + (t - 0.5) / 0.5 * (1 - b)
        """
        def shift(t: float) -> float:
            return baseline + (t - 0.5) / 0.5 * (1.0 - baseline)

        return cls(baseline=baseline, strong=shift(strong), good=shift(good), weak=shift(weak))

    model_config = {"frozen": True}


class ThresholdOverrides(BaseModel):
    """Per-strategy overrides; unset fields keep the strategy default."""

    strong: float | None = Field(default=None, ge=0.0, le=1.0)
    good: float | None = Field(default=None, ge=0.0, le=1.0)
    weak: float | None = Field(default=None, ge=0.0, le=1.0)
    ambiguity_margin: float | None = Field(default=None, ge=0.0, le=1.0)

    def apply(self, base: Thresholds) -> Thresholds:
        updates = {k: v for k, v in self.model_dump().items() if v is not None}
        if not updates:
            return base
        try:
            return Thresholds(**{**base.model_dump(), **updates})
        except ValidationError as e:
            raise ConfigError(f"Invalid threshold overrides: {e}") from e

    model_config = {"frozen": True}


# =============================================================================
# ALGEBRA CONFIGURATION
# =============================================================================

class AlgebraConfig(BaseModel):
    """Which vector algebra to use and how large its vectors are."""

    strategy: str = Field(
        default="dense-binary",
        description="Strategy identifier (see hdc_core.strategies.available_strategies)"
    )
    dimensions: int | None = Field(
        default=None,
        description="Strategy-specific sizing parameter (None = strategy default)"
    )
    scope: str = Field(
        default="default",
        min_length=1,
        description="Seed namespace for name-derived vectors"
    )
    thresholds: ThresholdOverrides = Field(default_factory=ThresholdOverrides)

    model_config = {"frozen": True}

    @classmethod
    def create(cls, **kwargs: Any) -> "AlgebraConfig":
        """Build a config, converting validation failures into ConfigError."""
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ConfigError(f"Invalid algebra configuration: {e}") from e
