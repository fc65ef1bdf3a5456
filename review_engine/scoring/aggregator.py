"""
Weighted aggregation over the rubric's metric / component tree.

For every rule list (a component's, or a flat metric's own):
  1. max points  = best score the list can award in the resolved tier
                   (tiered rules: relevant tier only; condition rules: all)
  2. first match = rules in declared order, first hit wins
  3. missing     = governing fact is null and nothing matched → 0 + flag

Earned and max points are weighted (component weight × metric weight) and
summed. First-match-wins is authoritative: rubric authors order rules from
most to least specific.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

import structlog

from review_engine.schemas.result import ComponentScore, Finding, MetricScore, TierInfo
from review_engine.schemas.rubric import (
    Component,
    ConditionRule,
    Metric,
    RubricConfiguration,
    ScoringRule,
    TierAxis,
    TieredRangeRule,
)
from review_engine.scoring.conditions import ConditionEvaluator, is_number
from review_engine.scoring.findings import create_finding

logger = structlog.get_logger()


@dataclass
class RuleOutcome:
    """What one rule list produced for one facts record."""
    score: float = 0.0
    max_possible: float = 0.0
    matched: bool = False
    missing_data: bool = False
    auto_downgrade: bool = False
    matched_rule: Optional[ConditionRule] = None


@dataclass
class Aggregate:
    metrics: dict[str, MetricScore] = field(default_factory=dict)
    findings: list[Finding] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    total_achieved: float = 0.0
    total_possible: float = 0.0

    @property
    def raw_total(self) -> float:
        if self.total_possible <= 0:
            return 0.0
        return min(100.0, max(0.0, self.total_achieved / self.total_possible * 100))


def _relevant_tier(metric: Metric, tier_info: TierInfo) -> Optional[str]:
    axis = metric.tier_axis
    if axis is TierAxis.FDV:
        return tier_info.fdv_tier
    if axis is TierAxis.EXCHANGE:
        return tier_info.exchange_tier
    return None


def max_points(rules: Sequence[ScoringRule], relevant_tier: Optional[str]) -> float:
    best = 0.0
    for rule in rules:
        if isinstance(rule, TieredRangeRule):
            if relevant_tier is not None and rule.tier == relevant_tier:
                best = max(best, *(r.score for r in rule.ranges))
        else:
            best = max(best, rule.score)
    return best


def apply_rules(
    rules: Sequence[ScoringRule],
    relevant_tier: Optional[str],
    fact_name: str,
    condition_facts: Mapping[str, Any],
    evaluator: ConditionEvaluator,
) -> RuleOutcome:
    outcome = RuleOutcome(max_possible=max_points(rules, relevant_tier))
    fact_known = fact_name in condition_facts
    value = condition_facts.get(fact_name)

    for rule in rules:
        if isinstance(rule, TieredRangeRule):
            if relevant_tier is None or rule.tier != relevant_tier:
                continue
            if fact_known and value is None:
                outcome.missing_data = True
                outcome.matched = True
                return outcome
            if not is_number(value):
                logger.warning(
                    "tiered_rule_value_not_numeric",
                    fact=fact_name,
                    value=repr(value),
                    tier=rule.tier,
                )
                continue
            for entry in rule.ranges:
                if value <= entry.upper:
                    outcome.score = entry.score
                    outcome.auto_downgrade = entry.auto_downgrade is not None
                    outcome.matched = True
                    return outcome
        elif evaluator.evaluate(rule.condition, condition_facts):
            outcome.score = rule.score
            outcome.auto_downgrade = rule.auto_downgrade is not None
            outcome.matched = True
            outcome.matched_rule = rule
            return outcome

    if fact_known and value is None:
        outcome.missing_data = True
    return outcome


def _rule_finding(rule: Optional[ConditionRule], metric: Metric, component: Optional[str]) -> Optional[Finding]:
    if rule is None or rule.finding is None:
        return None
    template = rule.finding
    return create_finding(
        template.severity,
        metric.name,
        template.title,
        template.description,
        template.recommendation,
        metric.id,
        component,
    )


def _score_component(
    component: Component,
    metric: Metric,
    relevant_tier: Optional[str],
    condition_facts: Mapping[str, Any],
    evaluator: ConditionEvaluator,
    agg: Aggregate,
) -> ComponentScore:
    outcome = apply_rules(
        component.scoring, relevant_tier, component.governing_fact, condition_facts, evaluator
    )
    flags: list[str] = []
    findings: list[Finding] = []

    if outcome.missing_data:
        flags.append(f"Missing data: {component.name}")
    if outcome.auto_downgrade:
        agg.flags.append(f"Auto-downgrade applied for {component.name}")
    finding = _rule_finding(outcome.matched_rule, metric, component.id)
    if finding is not None:
        findings.append(finding)
    if outcome.matched_rule is not None and outcome.matched_rule.description:
        flags.append(outcome.matched_rule.description)

    return ComponentScore(
        score=outcome.score,
        max_possible=outcome.max_possible,
        flags=flags,
        findings=findings,
    )


def score_metric(
    metric: Metric,
    tier_info: TierInfo,
    condition_facts: Mapping[str, Any],
    evaluator: ConditionEvaluator,
    agg: Aggregate,
) -> MetricScore:
    relevant_tier = _relevant_tier(metric, tier_info)
    achieved = 0.0
    possible = 0.0
    components: dict[str, ComponentScore] = {}
    metric_findings: list[Finding] = []

    if metric.components:
        for component in metric.components:
            scored = _score_component(
                component, metric, relevant_tier, condition_facts, evaluator, agg
            )
            weight = component.weight * metric.weight
            achieved += scored.score * weight
            possible += scored.max_possible * weight
            components[component.id] = scored
            agg.findings.extend(scored.findings)
    else:
        outcome = apply_rules(
            metric.scoring or (), relevant_tier, metric.governing_fact, condition_facts, evaluator
        )
        if outcome.missing_data:
            agg.flags.append(f"Missing data for metric: {metric.name}")
        if outcome.auto_downgrade:
            agg.flags.append(f"Auto-downgrade applied for {metric.name}")
        finding = _rule_finding(outcome.matched_rule, metric, None)
        if finding is not None:
            metric_findings.append(finding)
            agg.findings.append(finding)
        if outcome.matched_rule is not None and outcome.matched_rule.description:
            agg.recommendations.append(outcome.matched_rule.description)
        achieved = outcome.score * metric.weight
        possible = outcome.max_possible * metric.weight

    return MetricScore(
        score=achieved / possible * 100 if possible > 0 else 0.0,
        max_possible=possible,
        achieved=achieved,
        components=components,
        findings=metric_findings,
    )


def aggregate(
    rubric: RubricConfiguration,
    tier_info: TierInfo,
    condition_facts: Mapping[str, Any],
    evaluator: ConditionEvaluator,
) -> Aggregate:
    agg = Aggregate()
    for metric in rubric.metrics:
        scored = score_metric(metric, tier_info, condition_facts, evaluator, agg)
        agg.metrics[metric.id] = scored
        agg.total_achieved += scored.achieved
        agg.total_possible += scored.max_possible
    return agg
