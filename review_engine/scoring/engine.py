"""
Agreement Scoring Engine

Orchestrates:
  1. Tier resolution (valuation + exchange)
  2. Built-in pattern findings + rubric red flags
  3. Weighted metric / component aggregation
  4. Auto-downgrades (global penalties)
  5. Display snapping (metrics first, then the total)
  6. Grade assignment
  7. Recommendation dedupe

Construct one engine per rubric at startup and share it: it holds the
rubric and the compiled conditions read-only, so concurrent calls need no
locking. Scoring a document never raises; a bad rule degrades to "false".
"""
from __future__ import annotations

import time
from functools import lru_cache
from typing import Any, Iterable, Mapping, Optional

import structlog

from review_engine.core.config import get_settings
from review_engine.core.metrics import EVALUATIONS, REDACTIONS, SCORING_SECONDS
from review_engine.schemas.facts import ExtractedFacts, coerce_facts
from review_engine.schemas.result import (
    Finding,
    MetricScore,
    ReviewRecord,
    ScoringResult,
)
from review_engine.schemas.rubric import AutoDowngradeRule, RubricConfiguration
from review_engine.scoring.aggregator import aggregate
from review_engine.scoring.conditions import ConditionEvaluator
from review_engine.scoring.findings import create_finding, pattern_findings, red_flag_findings
from review_engine.scoring.grading import map_grade
from review_engine.scoring.redaction import redact_result
from review_engine.scoring.snapping import snap_to_display_score
from review_engine.scoring.tiers import resolve_tiers
from review_engine.services.rubric_loader import load_rubric

logger = structlog.get_logger()

TOTAL_SCALE = 100


class ScoringEngine:
    def __init__(self, rubric: RubricConfiguration):
        self.rubric = rubric
        self.evaluator = ConditionEvaluator(rubric.conditions())

    @property
    def version(self) -> str:
        return self.rubric.version

    def score_agreement(self, facts: ExtractedFacts | Mapping[str, Any] | None) -> ScoringResult:
        """
        Main scoring entry point.
        """
        t0 = time.perf_counter()
        record = coerce_facts(facts)
        condition_facts = record.as_condition_facts()

        # ── Step 1: Tiers ──
        tier_info = resolve_tiers(self.rubric, record.fdv, record.exchange)

        # ── Step 2: Findings outside the numeric score ──
        findings: list[Finding] = pattern_findings(record)
        red_findings, flags = red_flag_findings(self.rubric.red_flags, self.evaluator, condition_facts)
        findings.extend(red_findings)

        # ── Step 3: Weighted aggregation ──
        agg = aggregate(self.rubric, tier_info, condition_facts, self.evaluator)
        findings.extend(agg.findings)
        flags.extend(agg.flags)

        # ── Step 4: Auto-downgrades ──
        raw_total = self._apply_auto_downgrades(agg.raw_total, condition_facts, findings, flags)

        # ── Step 5: Snapping ──
        metrics = {mid: _snap_metric(m) for mid, m in agg.metrics.items()}
        total_score = snap_to_display_score(raw_total, TOTAL_SCALE)

        # ── Step 6: Grade ──
        band = map_grade(total_score, self.rubric.rating_scale)

        # ── Step 7: Recommendations ──
        recommendations = _dedupe(
            [*agg.recommendations, *(f.recommendation for f in findings)]
        )

        result = ScoringResult(
            total_score=total_score,
            raw_total_score=raw_total,
            grade=band.grade,
            grade_description=band.description,
            metrics=metrics,
            findings=findings,
            flags=flags,
            recommendations=recommendations,
            tier_info=tier_info,
            rubric_version=self.rubric.version,
        )

        elapsed = time.perf_counter() - t0
        SCORING_SECONDS.observe(elapsed)
        EVALUATIONS.labels(rubric_version=self.rubric.version, grade=band.grade).inc()
        logger.info(
            "scoring_complete",
            rubric_version=self.rubric.version,
            total_score=total_score,
            raw_total_score=round(raw_total, 2),
            grade=band.grade,
            findings_count=len(findings),
            flags_count=len(flags),
            fdv_tier=tier_info.fdv_tier,
            exchange_tier=tier_info.exchange_tier,
            elapsed_ms=round(elapsed * 1000, 3),
        )
        return result

    def review(self, facts: ExtractedFacts | Mapping[str, Any] | None) -> ReviewRecord:
        """Score and wrap with the facts, ready to be stored as one blob."""
        record = coerce_facts(facts)
        return ReviewRecord(
            extracted_facts=record.model_dump(mode="json", by_alias=True),
            scoring_result=self.score_agreement(record),
            rubric_version=self.rubric.version,
        )

    def redact_result(self, result: ScoringResult, entitled: bool) -> ScoringResult:
        """Redact for a viewer without detail entitlement; entitled viewers get the result unchanged."""
        if not entitled:
            REDACTIONS.inc()
            return redact_result(result, entitled=False)
        return result

    # ═══════════════════════════════════════════════════════════════
    # Auto-downgrades: applied to the raw total, in declared order
    # ═══════════════════════════════════════════════════════════════

    def _apply_auto_downgrades(
        self,
        total: float,
        condition_facts: Mapping[str, Any],
        findings: list[Finding],
        flags: list[str],
    ) -> float:
        for rule in self.rubric.auto_downgrades:
            if not self.evaluator.evaluate(rule.condition, condition_facts):
                continue
            # Floor at 0 only; a positive adjustment is not re-capped here
            total = max(0.0, total + rule.adjustment)
            flags.append(f"Auto-downgrade applied: {rule.condition}")
            finding = _downgrade_finding(rule)
            if finding is not None:
                findings.append(finding)
        return total


def _downgrade_finding(rule: AutoDowngradeRule) -> Optional[Finding]:
    if rule.finding is None:
        return None
    return create_finding(
        rule.finding.severity,
        "Auto Downgrade",
        rule.finding.title,
        rule.finding.description,
        rule.finding.recommendation,
        "system",
    )


def _snap_metric(metric: MetricScore) -> MetricScore:
    if metric.max_possible <= 0:
        return metric
    achieved = min(
        float(snap_to_display_score(metric.achieved, metric.max_possible)),
        metric.max_possible,
    )
    return metric.model_copy(update={
        "achieved": achieved,
        "score": achieved / metric.max_possible * 100,
    })


def _dedupe(items: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for item in items:
        if item and item.strip():
            seen.setdefault(item, None)
    return list(seen)


def build_engine(rubric_path: Optional[str] = None) -> ScoringEngine:
    rubric = load_rubric(rubric_path)
    return ScoringEngine(rubric)


@lru_cache
def get_engine() -> ScoringEngine:
    """
    Process-wide engine for the configured rubric.

    Reloading swaps the whole engine: get_engine.cache_clear(), then call again.
    """
    return build_engine(get_settings().rubric_path)
