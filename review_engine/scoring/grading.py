"""
Grade mapping: first rating band (descending by min) the score reaches.

The rubric loader guarantees the scale is strictly descending and ends in a
0-minimum band, so every non-negative score maps and the mapping is
monotonic.
"""
from __future__ import annotations

from typing import Sequence

from review_engine.schemas.rubric import RatingBand


def map_grade(score: float, rating_scale: Sequence[RatingBand]) -> RatingBand:
    for band in rating_scale:
        if score >= band.min:
            return band
    return rating_scale[-1]
