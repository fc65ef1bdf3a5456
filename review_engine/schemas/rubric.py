"""
Rubric configuration — the versioned rule set that drives scoring.

The JSON document uses camelCase keys. All models are frozen: a loaded
rubric is shared read-only by every evaluation in the process.

Invariants enforced here (violations refuse to load):
  - rating scale non-empty, strictly descending by ``min``, last band ``min == 0``
  - every metric has components or a flat rule list, never an empty list
  - a metric depends on at most one tier axis
  - tiered rules only appear under a tier-dependent metric and name a known tier
  - both tier tables are non-empty and the fallback tiers exist
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    model_validator,
)
from pydantic.alias_generators import to_camel


class _RubricModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class TierAxis(str, Enum):
    FDV = "fdv"
    EXCHANGE = "exchange"


# ── Tiers ──

class FdvTier(_RubricModel):
    min: Optional[float] = None
    max: Optional[float] = None
    label: str = Field(min_length=1)

    def contains(self, value: float) -> bool:
        lower = self.min if self.min is not None else 0.0
        upper = self.max if self.max is not None else float("inf")
        return lower <= value <= upper


class ExchangeTier(_RubricModel):
    exchanges: tuple[str, ...] = ()
    label: str = Field(min_length=1)


# ── Rules ──

class FindingTemplate(_RubricModel):
    severity: Severity
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    recommendation: str = Field(min_length=1)


class ConditionRule(_RubricModel):
    kind: Literal["condition"] = "condition"
    condition: str = Field(min_length=1)
    score: float = 0.0
    # Marker only: a matched rule carrying it records an audit flag
    auto_downgrade: Optional[float] = None
    finding: Optional[FindingTemplate] = None
    description: Optional[str] = None


class RangeEntry(_RubricModel):
    max: Optional[float] = None
    score: float
    auto_downgrade: Optional[float] = None

    @property
    def upper(self) -> float:
        return self.max if self.max is not None else float("inf")


class TieredRangeRule(_RubricModel):
    kind: Literal["tiered"] = "tiered"
    tier: str = Field(min_length=1)
    ranges: tuple[RangeEntry, ...] = Field(min_length=1)


def _rule_kind(value: Any) -> str:
    if isinstance(value, dict):
        if "kind" in value:
            return value["kind"]
        return "tiered" if "ranges" in value else "condition"
    return getattr(value, "kind", "condition")


ScoringRule = Annotated[
    Union[
        Annotated[ConditionRule, Tag("condition")],
        Annotated[TieredRangeRule, Tag("tiered")],
    ],
    Discriminator(_rule_kind),
]


class Component(_RubricModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    weight: float = Field(1.0, ge=0)
    fact: Optional[str] = None
    scoring: tuple[ScoringRule, ...] = Field(min_length=1)

    @property
    def governing_fact(self) -> str:
        return self.fact or self.id


class Metric(_RubricModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    weight: float = Field(1.0, ge=0)
    fdv_dependent: bool = False
    exchange_dependent: bool = False
    fact: Optional[str] = None
    components: Optional[tuple[Component, ...]] = None
    scoring: Optional[tuple[ScoringRule, ...]] = None

    @property
    def governing_fact(self) -> str:
        return self.fact or self.id

    @property
    def tier_axis(self) -> Optional[TierAxis]:
        if self.fdv_dependent:
            return TierAxis.FDV
        if self.exchange_dependent:
            return TierAxis.EXCHANGE
        return None

    def rule_lists(self) -> list[tuple[str, tuple[ScoringRule, ...]]]:
        if self.components:
            return [(f"{self.id}.{c.id}", c.scoring) for c in self.components]
        return [(self.id, self.scoring or ())]

    @model_validator(mode="after")
    def _check_shape(self) -> "Metric":
        if self.fdv_dependent and self.exchange_dependent:
            raise ValueError(f"metric '{self.id}' cannot depend on both fdv and exchange tiers")
        if self.components is not None and len(self.components) == 0:
            raise ValueError(f"metric '{self.id}' has an empty components list")
        if self.scoring is not None and len(self.scoring) == 0:
            raise ValueError(f"metric '{self.id}' has an empty scoring list")
        if not self.components and not self.scoring:
            raise ValueError(f"metric '{self.id}' defines neither components nor scoring rules")
        return self


class AutoDowngradeRule(_RubricModel):
    condition: str = Field(min_length=1)
    adjustment: float
    finding: Optional[FindingTemplate] = None


class RedFlagRule(_RubricModel):
    condition: str = Field(min_length=1)
    description: str = Field(min_length=1)


class RedFlags(_RubricModel):
    critical: tuple[RedFlagRule, ...] = ()
    major: tuple[RedFlagRule, ...] = ()


class RatingBand(_RubricModel):
    min: float
    grade: str = Field(min_length=1)
    description: str


# ── Root ──

class RubricConfiguration(_RubricModel):
    version: str = Field(min_length=1)
    fdv_tiers: dict[str, FdvTier]
    exchange_tiers: dict[str, ExchangeTier]
    fallback_fdv_tier: Optional[str] = None
    fallback_exchange_tier: Optional[str] = None
    metrics: tuple[Metric, ...] = Field(min_length=1)
    rating_scale: tuple[RatingBand, ...]
    auto_downgrades: tuple[AutoDowngradeRule, ...] = ()
    red_flags: RedFlags = RedFlags()

    @property
    def lowest_fdv_tier(self) -> str:
        if self.fallback_fdv_tier:
            return self.fallback_fdv_tier
        # Smallest bucket: lowest lower bound, first declared on ties
        return min(
            self.fdv_tiers,
            key=lambda t: self.fdv_tiers[t].min if self.fdv_tiers[t].min is not None else 0.0,
        )

    @property
    def lowest_exchange_tier(self) -> str:
        if self.fallback_exchange_tier:
            return self.fallback_exchange_tier
        return list(self.exchange_tiers)[-1]

    def tiers_for(self, axis: TierAxis) -> dict[str, Any]:
        return self.fdv_tiers if axis is TierAxis.FDV else self.exchange_tiers

    def conditions(self) -> list[str]:
        """Every condition string in the rubric, in declaration order."""
        found: list[str] = []
        for metric in self.metrics:
            for _, rules in metric.rule_lists():
                found.extend(r.condition for r in rules if isinstance(r, ConditionRule))
        found.extend(d.condition for d in self.auto_downgrades)
        found.extend(f.condition for f in self.red_flags.critical)
        found.extend(f.condition for f in self.red_flags.major)
        return found

    @model_validator(mode="after")
    def _check_invariants(self) -> "RubricConfiguration":
        if not self.fdv_tiers:
            raise ValueError("fdvTiers must not be empty")
        if not self.exchange_tiers:
            raise ValueError("exchangeTiers must not be empty")
        if self.fallback_fdv_tier and self.fallback_fdv_tier not in self.fdv_tiers:
            raise ValueError(f"fallbackFdvTier '{self.fallback_fdv_tier}' is not a declared fdv tier")
        if self.fallback_exchange_tier and self.fallback_exchange_tier not in self.exchange_tiers:
            raise ValueError(
                f"fallbackExchangeTier '{self.fallback_exchange_tier}' is not a declared exchange tier"
            )

        if not self.rating_scale:
            raise ValueError("ratingScale must not be empty")
        mins = [band.min for band in self.rating_scale]
        if any(a <= b for a, b in zip(mins, mins[1:])):
            raise ValueError("ratingScale must be ordered strictly descending by min")
        if mins[-1] != 0:
            raise ValueError("ratingScale must end with a band whose min is 0")

        seen: set[str] = set()
        for metric in self.metrics:
            if metric.id in seen:
                raise ValueError(f"duplicate metric id '{metric.id}'")
            seen.add(metric.id)
            axis = metric.tier_axis
            for where, rules in metric.rule_lists():
                for rule in rules:
                    if not isinstance(rule, TieredRangeRule):
                        continue
                    if axis is None:
                        raise ValueError(
                            f"{where}: tiered rule for '{rule.tier}' in a metric with no tier dependency"
                        )
                    if rule.tier not in self.tiers_for(axis):
                        raise ValueError(f"{where}: unknown {axis.value} tier '{rule.tier}'")
        return self
