"""
Facts record produced by the upstream AI extraction step.

Every field is optional: None means "the extractor could not tell", which
the engine treats differently from the worst-case value. Wire names are
camelCase (what the extractor emits and what rubric conditions reference);
Python attributes are snake_case.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = structlog.get_logger()


# ── Closed value sets ──

class TerminationRights(str, Enum):
    EQUAL = "equal"
    MINOR_ASYMMETRY = "minorAsymmetry"
    SOME_IMBALANCE = "someImbalance"
    HEAVILY_FAVORS_ONE = "heavilyFavorsOne"
    ONE_SIDED = "oneSided"
    NO_PROJECT_RIGHTS = "noProjectRights"


class ForceMajeure(str, Enum):
    EQUAL_COVERAGE = "equalCoverage"
    STANDARD_WITH_MINOR_GAPS = "standardWithMinorGaps"
    BASIC = "basic"
    WEAK_OR_ONE_SIDED = "weakOrOneSided"


class UnlockSchedule(str, Enum):
    LINEAR_OR_STRUCTURED = "linearOrStructured"
    REASONABLE = "reasonable"
    PARTIAL_EARLY = "partialEarly"
    UNRESTRICTED = "unrestricted"


class StrikePrice(str, Enum):
    INDEXED_TO_FMV = "indexedToFMV"
    MODEST_PREMIUM = "modestPremium"
    FLAT = "flat"
    DISCOUNTED = "discounted"
    HIGHLY_FAVORABLE = "highlyFavorable"


class Clawback(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    BASIC = "basic"
    WEAK = "weak"


class KpiClarity(str, Enum):
    CLEAR_AND_MEASURABLE = "clearAndMeasurable"
    WELL_DEFINED_MINOR_AMBIGUITIES = "wellDefinedMinorAmbiguities"
    GENERALLY_CLEAR = "generallyClear"
    BASIC_WITH_GAPS = "basicWithGaps"
    VAGUE_OR_NONE = "vagueOrNone"


class Reporting(str, Enum):
    REAL_TIME_OR_DAILY = "realTimeOrDaily"
    REGULAR = "regular"
    BASIC = "basic"
    UNCLEAR_OR_NONE = "unclearOrNone"


class KpiAdaptability(str, Enum):
    AUTOMATIC = "automatic"
    SOME_FLEXIBILITY = "someFlexibility"
    FIXED = "fixed"


class RemedyStructure(str, Enum):
    GRADUATED = "graduated"
    CLEAR = "clear"
    BASIC = "basic"
    HARSH = "harsh"
    EXCESSIVE_OR_NONE = "excessiveOrNone"


class DisputeResolution(str, Enum):
    ARBITRATION = "arbitration"
    DEFINED_PROCESS = "definedProcess"
    BASIC = "basic"
    UNCLEAR_OR_UNFAVORABLE = "unclearOrUnfavorable"


class AssetProtection(str, Enum):
    CLEAR_SEGREGATION = "clearSegregation"
    BASIC = "basic"
    LIMITED = "limited"
    UNCLEAR_OR_INADEQUATE = "unclearOrInadequate"


class FeeStructure(str, Enum):
    PERFORMANCE_BASED = "performanceBased"
    MIXED_REASONABLE = "mixedReasonable"
    ACCEPTABLE_WITH_CONCERNS = "acceptableWithConcerns"
    EXCESSIVE_OR_UNFAIR = "excessiveOrUnfair"


# ── Facts record ──

class ExtractedFacts(BaseModel):
    """Normalised contract terms of a market-maker agreement."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # Agreement structure
    termination_rights: Optional[TerminationRights] = None
    same_notice_period: Optional[bool] = None
    notice_period_days: Optional[float] = Field(None, ge=0)
    wind_down_days: Optional[float] = Field(None, ge=0)
    wind_down_defined: Optional[bool] = None
    force_majeure: Optional[ForceMajeure] = None

    # Market-making parameters
    fdv: Optional[float] = Field(None, ge=0, description="Fully diluted valuation, USD")
    allocation_size: Optional[float] = Field(None, ge=0, description="Loaned tokens, % of supply")
    exchange: Optional[str] = None
    max_spread: Optional[float] = Field(None, ge=0, description="Maximum quoted spread, %")

    # Option / token economics
    exercise_period_months: Optional[float] = Field(None, ge=0)
    unlock_schedule: Optional[UnlockSchedule] = None
    strike_price: Optional[StrikePrice] = None
    premium_percent: Optional[float] = None
    clawback: Optional[Clawback] = None

    # Performance
    kpi_clarity: Optional[KpiClarity] = None
    reporting: Optional[Reporting] = None
    kpi_adaptability: Optional[KpiAdaptability] = None

    # Risk & remedies
    remedy_structure: Optional[RemedyStructure] = None
    cure_period_days: Optional[float] = Field(None, ge=0)
    dispute_resolution: Optional[DisputeResolution] = None
    asset_protection: Optional[AssetProtection] = None

    # Commercials
    fee_structure: Optional[FeeStructure] = None
    exclusivity_months: Optional[float] = Field(None, ge=0)

    def as_condition_facts(self) -> dict[str, Any]:
        """Wire-named, JSON-typed view used by the condition evaluator."""
        return self.model_dump(mode="json", by_alias=True)


def wire_field_names() -> frozenset[str]:
    return frozenset(
        info.alias or name for name, info in ExtractedFacts.model_fields.items()
    )


def coerce_facts(raw: ExtractedFacts | Mapping[str, Any] | None) -> ExtractedFacts:
    """
    Best-effort conversion of an extractor payload into ExtractedFacts.

    Fields that fail validation are logged and treated as unknown rather
    than failing the whole document.
    """
    if isinstance(raw, ExtractedFacts):
        return raw
    data = dict(raw or {})

    try:
        return ExtractedFacts.model_validate(data)
    except ValidationError as e:
        bad_fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        for field in sorted(bad_fields):
            logger.warning(
                "facts_field_invalid",
                field=field,
                value=repr(data.get(field)),
            )
            data[field] = None

    return ExtractedFacts.model_validate(data)
