"""
Finding generation independent of the numeric score.

Two sources:
  1. Built-in pattern checks on well-known facts (termination notice bands,
     clawback strength) with graduated severity.
  2. Rubric red-flag rules: every true critical/major condition yields one
     Finding (Critical / High) plus the rule description as a flat flag.
"""
from __future__ import annotations

from typing import Iterable, Optional

from review_engine.schemas.facts import Clawback, ExtractedFacts
from review_engine.schemas.result import Finding
from review_engine.schemas.rubric import RedFlagRule, RedFlags, Severity
from review_engine.scoring.conditions import ConditionEvaluator

CRITICAL_RED_FLAG_RECOMMENDATION = "Immediate attention required. This term is highly non-standard."
MAJOR_RED_FLAG_RECOMMENDATION = "Strongly recommended to negotiate this term."


def create_finding(
    severity: Severity,
    category: str,
    title: str,
    description: str,
    recommendation: str,
    metric: str,
    component: Optional[str] = None,
) -> Finding:
    return Finding(
        severity=severity,
        category=category,
        title=title,
        description=description,
        recommendation=recommendation,
        metric=metric,
        component=component,
    )


# ═══════════════════════════════════════════════════════════════
# 1. TERMINATION NOTICE BANDS
#    Upper bounds inclusive; 30 days is the first reported value.
# ═══════════════════════════════════════════════════════════════
_NOTICE_BANDS: list[tuple[float, Severity, str, str]] = [
    (60, Severity.LOW,
     "30–60 days notice with clear 7–30 day wind-down procedures.",
     "Ensure wind-down procedures are well defined and practical."),
    (90, Severity.LOW,
     "60–90 days notice with defined wind-down.",
     "Maintain defined wind-down procedures for smooth transition."),
    (120, Severity.MEDIUM,
     "90–120 days notice with only basic wind-down.",
     "Enhance wind-down details for clarity and fairness."),
    (180, Severity.MEDIUM,
     ">120 days notice but some procedures exist.",
     "Consider shortening notice period while keeping procedures."),
    (float("inf"), Severity.HIGH,
     "Excessive notice periods (>180 days) or unclear procedures.",
     "Revise termination terms to balance notice and wind-down procedures."),
]


def termination_finding(facts: ExtractedFacts) -> Optional[Finding]:
    notice = facts.notice_period_days
    if notice is None or notice < 30:
        return None

    for upper, severity, description, recommendation in _NOTICE_BANDS:
        if notice <= upper:
            return create_finding(
                severity,
                "Termination Rights",
                "Market termination rights",
                description,
                recommendation,
                "agreementStructure",
                "termination",
            )
    return None


# ═══════════════════════════════════════════════════════════════
# 2. CLAWBACK STRENGTH
# ═══════════════════════════════════════════════════════════════
_CLAWBACK_FINDINGS: dict[Clawback, tuple[Severity, str, str, str]] = {
    Clawback.STRONG: (
        Severity.LOW,
        "Strong clawback provisions",
        "Strong clawback provisions tied to performance milestones with automatic triggers.",
        "Maintain robust clawback mechanisms to ensure accountability.",
    ),
    Clawback.MODERATE: (
        Severity.LOW,
        "Moderate clawback provisions",
        "Moderate clawback provisions with clear triggers and enforcement mechanisms.",
        "Ensure enforcement remains consistent and transparent.",
    ),
    Clawback.BASIC: (
        Severity.MEDIUM,
        "Basic clawback provisions",
        "Basic clawback provisions with some performance requirements.",
        "Enhance clawback provisions to include stronger performance-based triggers.",
    ),
    Clawback.WEAK: (
        Severity.MEDIUM,
        "Weak clawback provisions",
        "Weak clawback mechanisms with limited enforcement.",
        "Strengthen enforcement mechanisms and link clawback to performance milestones.",
    ),
}


def clawback_finding(facts: ExtractedFacts) -> Optional[Finding]:
    if facts.clawback is None:
        return None
    severity, title, description, recommendation = _CLAWBACK_FINDINGS[facts.clawback]
    return create_finding(
        severity, "Vesting Terms", title, description, recommendation, "tokenEconomics", "clawback"
    )


def pattern_findings(facts: ExtractedFacts) -> list[Finding]:
    found = [termination_finding(facts), clawback_finding(facts)]
    return [f for f in found if f is not None]


# ═══════════════════════════════════════════════════════════════
# 3. RUBRIC RED FLAGS
# ═══════════════════════════════════════════════════════════════

def _matching(
    rules: Iterable[RedFlagRule],
    evaluator: ConditionEvaluator,
    condition_facts: dict,
) -> list[RedFlagRule]:
    return [r for r in rules if evaluator.evaluate(r.condition, condition_facts)]


def red_flag_findings(
    red_flags: RedFlags,
    evaluator: ConditionEvaluator,
    condition_facts: dict,
) -> tuple[list[Finding], list[str]]:
    """Returns (findings, flat flags), critical before major."""
    findings: list[Finding] = []
    flags: list[str] = []

    for rule in _matching(red_flags.critical, evaluator, condition_facts):
        findings.append(create_finding(
            Severity.CRITICAL,
            "Critical Red Flag",
            "Critical Issue Detected",
            rule.description,
            CRITICAL_RED_FLAG_RECOMMENDATION,
            "redFlag",
            "critical",
        ))
        flags.append(rule.description)

    for rule in _matching(red_flags.major, evaluator, condition_facts):
        findings.append(create_finding(
            Severity.HIGH,
            "Major Red Flag",
            "Major Issue Detected",
            rule.description,
            MAJOR_RED_FLAG_RECOMMENDATION,
            "redFlag",
            "major",
        ))
        flags.append(rule.description)

    return findings, flags
