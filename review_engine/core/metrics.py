"""
Prometheus instruments for the scoring engine.

Registered on the default registry; whoever embeds the engine decides how
to expose them (ASGI app, push gateway, ...).
"""
from prometheus_client import Counter, Histogram

EVALUATIONS = Counter(
    "review_engine_evaluations_total",
    "Agreements scored, by rubric version and grade",
    ["rubric_version", "grade"],
)

CONDITION_ERRORS = Counter(
    "review_engine_condition_errors_total",
    "Rubric conditions that failed closed",
    ["reason"],
)

SCORING_SECONDS = Histogram(
    "review_engine_scoring_seconds",
    "Wall time of a single score_agreement call",
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1),
)

REDACTIONS = Counter(
    "review_engine_redactions_total",
    "Results served in redacted form",
)
