"""
Scoring output handed to the persistence / API layer.

Serialised with camelCase keys (``to_document``); callers store it as an
opaque blob keyed by document id + timestamp. No timestamps or ids live
in here, so identical inputs produce identical documents.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from review_engine.schemas.rubric import Severity


class _ResultModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Finding(_ResultModel):
    """A single severity-tagged issue, independent of the numeric score."""
    severity: Severity
    category: str
    title: str
    description: str = Field(min_length=1)
    recommendation: str = Field(min_length=1)
    metric: str = Field(description="Originating metric id, or 'redFlag' / 'system'")
    component: Optional[str] = None


class ComponentScore(_ResultModel):
    score: float = Field(description="Points earned, before weighting")
    max_possible: float
    flags: list[str] = []
    findings: list[Finding] = []


class MetricScore(_ResultModel):
    score: float = Field(description="Percentage: achieved / maxPossible * 100")
    max_possible: float
    achieved: float
    components: dict[str, ComponentScore] = {}
    findings: list[Finding] = []


class TierInfo(_ResultModel):
    fdv_tier: str
    fdv_tier_label: str
    exchange_tier: str
    exchange_tier_label: str
    fdv_value: Optional[float] = None
    exchange_name: Optional[str] = None


class ScoringResult(_ResultModel):
    total_score: float = Field(ge=0, le=100, description="Snapped display score")
    raw_total_score: float = Field(ge=0, description="After auto-downgrades, before snapping")
    grade: str
    grade_description: str
    metrics: dict[str, MetricScore]
    findings: list[Finding]
    flags: list[str]
    recommendations: list[str]
    tier_info: TierInfo
    rubric_version: str


class ReviewRecord(_ResultModel):
    """What the product stores per analysed document: facts + their score."""
    extracted_facts: dict[str, Any]
    scoring_result: ScoringResult
    rubric_version: str
