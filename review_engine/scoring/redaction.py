"""
Redaction for viewers without a paid entitlement.

Keeps the shape of a result (how many findings, their severity, category
and title, every score, grade and tier) while replacing anything that
tells the viewer *what* is wrong or *how* to fix it. Pure and idempotent:
the input is never mutated and redacting twice equals redacting once.
"""
from __future__ import annotations

from review_engine.schemas.result import (
    ComponentScore,
    Finding,
    MetricScore,
    ReviewRecord,
    ScoringResult,
)

REDACTION_MESSAGE = "Upgrade to Pro to unlock detailed findings and strategic advice."
REDACTED_FLAG = "Potential risk identified (Upgrade to reveal)"
REDACTED_FACTS = {"message": "Upgrade to Pro to unlock detailed extracted contract terms."}


def _redact_finding(finding: Finding) -> Finding:
    return finding.model_copy(
        update={"description": REDACTION_MESSAGE, "recommendation": REDACTION_MESSAGE}
    )


def _redact_component(component: ComponentScore) -> ComponentScore:
    return component.model_copy(update={
        "flags": [REDACTED_FLAG for _ in component.flags],
        "findings": [_redact_finding(f) for f in component.findings],
    })


def _redact_metric(metric: MetricScore) -> MetricScore:
    return metric.model_copy(update={
        "components": {cid: _redact_component(c) for cid, c in metric.components.items()},
        "findings": [_redact_finding(f) for f in metric.findings],
    })


def redact_result(result: ScoringResult, entitled: bool = False) -> ScoringResult:
    if entitled:
        return result

    return result.model_copy(update={
        "findings": [_redact_finding(f) for f in result.findings],
        "flags": [REDACTED_FLAG for _ in result.flags],
        # Collapsed to one entry: the list stays duplicate-free
        "recommendations": [REDACTION_MESSAGE] if result.recommendations else [],
        "metrics": {mid: _redact_metric(m) for mid, m in result.metrics.items()},
    })


def redact_review(record: ReviewRecord, entitled: bool = False) -> ReviewRecord:
    if entitled:
        return record

    return record.model_copy(update={
        "extracted_facts": dict(REDACTED_FACTS),
        "scoring_result": redact_result(record.scoring_result, entitled=False),
    })
