"""
Redaction of results and review records for non-entitled viewers.
"""
from review_engine.schemas.result import (
    ComponentScore,
    Finding,
    MetricScore,
    ReviewRecord,
    ScoringResult,
    TierInfo,
)
from review_engine.schemas.rubric import Severity
from review_engine.scoring.redaction import (
    REDACTED_FACTS,
    REDACTED_FLAG,
    REDACTION_MESSAGE,
    redact_result,
    redact_review,
)


def _make_finding(severity: Severity, title: str) -> Finding:
    return Finding(
        severity=severity,
        category="Termination Rights",
        title=title,
        description=f"{title} details.",
        recommendation=f"Fix {title.lower()}.",
        metric="agreementStructure",
        component="termination",
    )


def _make_result() -> ScoringResult:
    findings = [
        _make_finding(Severity.CRITICAL, "No project exit"),
        _make_finding(Severity.MEDIUM, "Long notice"),
        _make_finding(Severity.LOW, "Strong clawback"),
    ]
    component = ComponentScore(
        score=0, max_possible=10, flags=["Missing data: Notice"], findings=[findings[1]]
    )
    return ScoringResult(
        total_score=42,
        raw_total_score=41.7,
        grade="D",
        grade_description="Weak",
        metrics={
            "agreementStructure": MetricScore(
                score=40, max_possible=25, achieved=10,
                components={"termination": component},
            ),
        },
        findings=findings,
        flags=["No project exit", "Auto-downgrade applied: terminationRights == 'oneSided'"],
        recommendations=["Fix no project exit.", "Fix long notice.", "Fix strong clawback."],
        tier_info=TierInfo(
            fdv_tier="MicroCap", fdv_tier_label="Micro", exchange_tier="Tier3", exchange_tier_label="Other",
        ),
        rubric_version="1.0.0",
    )


class TestRedactResult:
    def test_findings_keep_count_and_severity(self):
        result = _make_result()
        redacted = redact_result(result)
        assert len(redacted.findings) == 3
        assert [f.severity for f in redacted.findings] == [f.severity for f in result.findings]
        assert [f.title for f in redacted.findings] == [f.title for f in result.findings]
        for finding in redacted.findings:
            assert finding.description == REDACTION_MESSAGE
            assert finding.recommendation == REDACTION_MESSAGE

    def test_scores_untouched(self):
        result = _make_result()
        redacted = redact_result(result)
        assert redacted.total_score == result.total_score
        assert redacted.raw_total_score == result.raw_total_score
        assert redacted.grade == result.grade
        assert redacted.tier_info == result.tier_info
        assert redacted.metrics["agreementStructure"].achieved == 10

    def test_flags_and_recommendations(self):
        redacted = redact_result(_make_result())
        assert redacted.flags == [REDACTED_FLAG, REDACTED_FLAG]
        assert redacted.recommendations == [REDACTION_MESSAGE]

    def test_nested_component_detail(self):
        redacted = redact_result(_make_result())
        component = redacted.metrics["agreementStructure"].components["termination"]
        assert component.flags == [REDACTED_FLAG]
        assert component.findings[0].description == REDACTION_MESSAGE

    def test_idempotent(self):
        once = redact_result(_make_result())
        assert redact_result(once) == once

    def test_input_not_mutated(self):
        result = _make_result()
        redact_result(result)
        assert result.findings[0].description == "No project exit details."
        assert result.recommendations[0] == "Fix no project exit."

    def test_entitled_viewer_sees_everything(self):
        result = _make_result()
        assert redact_result(result, entitled=True) is result

    def test_no_recommendations_stays_empty(self):
        result = _make_result().model_copy(update={"recommendations": []})
        assert redact_result(result).recommendations == []


class TestRedactReview:
    def test_facts_replaced(self):
        record = ReviewRecord(
            extracted_facts={"clawback": "weak"},
            scoring_result=_make_result(),
            rubric_version="1.0.0",
        )
        redacted = redact_review(record)
        assert redacted.extracted_facts == REDACTED_FACTS
        assert redacted.scoring_result.findings[0].description == REDACTION_MESSAGE
        assert redacted.rubric_version == "1.0.0"
        assert record.extracted_facts == {"clawback": "weak"}

    def test_entitled(self):
        record = ReviewRecord(
            extracted_facts={}, scoring_result=_make_result(), rubric_version="1.0.0"
        )
        assert redact_review(record, entitled=True) is record
