"""
Exception hierarchy for the review engine.

Only RubricConfigError ever reaches a caller: it is raised at startup when
the rubric cannot be trusted. Condition errors are raised inside the
condition evaluator and absorbed there (the condition counts as false).
"""
from __future__ import annotations

from typing import Optional


class ReviewEngineError(Exception):
    """Base class for all engine errors."""


class RubricConfigError(ReviewEngineError):
    """The rubric document is unreadable or violates a load-time invariant."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class ConditionError(ReviewEngineError):
    """A rubric condition could not be parsed or evaluated."""

    def __init__(self, message: str, condition: str):
        self.condition = condition
        super().__init__(message)


class ConditionSyntaxError(ConditionError):
    def __init__(self, message: str, condition: str, position: int):
        self.position = position
        super().__init__(f"{message} at position {position}", condition)


class ConditionEvaluationError(ConditionError):
    pass
