"""
Tier resolution — maps the two tier-driving facts onto rubric tier ids.

  fdv       → first declared valuation tier whose [min, max] contains it
  exchange  → first declared exchange tier listing the name (exact match)

Unknown or unmatched values fall back to the lowest-capability tier of the
axis. Resolution never fails.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from review_engine.schemas.result import TierInfo
from review_engine.schemas.rubric import RubricConfiguration


@dataclass(frozen=True)
class ResolvedTier:
    tier: str
    label: str


def resolve_fdv_tier(rubric: RubricConfiguration, fdv: Optional[float]) -> ResolvedTier:
    if fdv is not None:
        for tier, config in rubric.fdv_tiers.items():
            if config.contains(fdv):
                return ResolvedTier(tier, config.label)

    fallback = rubric.lowest_fdv_tier
    return ResolvedTier(fallback, rubric.fdv_tiers[fallback].label)


def resolve_exchange_tier(rubric: RubricConfiguration, exchange: Optional[str]) -> ResolvedTier:
    if exchange:
        for tier, config in rubric.exchange_tiers.items():
            if exchange in config.exchanges:
                return ResolvedTier(tier, config.label)

    fallback = rubric.lowest_exchange_tier
    return ResolvedTier(fallback, rubric.exchange_tiers[fallback].label)


def resolve_tiers(
    rubric: RubricConfiguration,
    fdv: Optional[float],
    exchange: Optional[str],
) -> TierInfo:
    fdv_tier = resolve_fdv_tier(rubric, fdv)
    exchange_tier = resolve_exchange_tier(rubric, exchange)
    return TierInfo(
        fdv_tier=fdv_tier.tier,
        fdv_tier_label=fdv_tier.label,
        exchange_tier=exchange_tier.tier,
        exchange_tier_label=exchange_tier.label,
        fdv_value=fdv,
        exchange_name=exchange,
    )
