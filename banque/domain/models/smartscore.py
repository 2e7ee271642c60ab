"""SmartScore result models."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import Field

from .base import FrozenModel


class Severity(str, Enum):
    """Severity of a missing data item."""

    BLOCKER = "blocker"
    WARN = "warn"
    INFO = "info"


class Verdict(str, Enum):
    FAVORABLE = "favorable"
    FAVORABLE_SOUS_CONDITIONS = "favorable_sous_conditions"
    DEFAVORABLE = "defavorable"
    DONNEES_INSUFFISANTES = "donnees_insuffisantes"


Grade = Literal["A", "B", "C", "D", "E"]


class MissingDataItem(FrozenModel):
    """A required input that is absent; penalized, never fatal."""

    key: str = Field(..., description="Dotted path of the missing field or pillar")
    label: str
    severity: Severity


class MissingPenalty(FrozenModel):
    key: str
    label: str
    severity: Severity
    points: int


class PillarResult(FrozenModel):
    """One weighted scoring dimension."""

    key: str
    label: str
    points: int = Field(..., ge=0, description="Earned points")
    max_points: int = Field(..., ge=0, description="Configured weight")
    raw_score: float = Field(..., ge=0, le=100, description="Sub-score 0-100")
    has_data: bool
    reasons: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)


class Driver(FrozenModel):
    """Pillar pulling the score up or down relative to the average."""

    key: str
    label: str
    direction: Literal["up", "down"]
    delta: float
    impact: str


class ScoreHistoryEntry(FrozenModel):
    score: int
    grade: Grade
    computed_at: str
    input_hash: str


class SmartScoreResult(FrozenModel):
    """Aggregated pillar score with explanations."""

    score: int = Field(..., ge=0, le=100)
    grade: Grade
    verdict: Verdict
    pillars: list[PillarResult]
    drivers_up: list[Driver] = Field(default_factory=list)
    drivers_down: list[Driver] = Field(default_factory=list)
    missing: list[MissingDataItem] = Field(default_factory=list)
    missing_penalties: list[MissingPenalty] = Field(default_factory=list)
    total_missing_penalty: int = 0
    blockers: list[str] = Field(default_factory=list)
    mandatory_actions: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    raw_average: float = 0.0
    input_hash: str
    engine_version: str
    generated_at: str

    def pillar(self, key: str) -> PillarResult | None:
        for p in self.pillars:
            if p.key == key:
                return p
        return None
