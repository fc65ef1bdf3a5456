"""
Display-score snapping.

Raw scores are remapped into a narrower band per scale ceiling so that a
result never shows a literal 0 or a perfect maximum. This is presentation
policy, not scoring: the bands below are kept verbatim for compatibility
with previously issued reports.

  ceiling   floor (score <= x → y)   cap (score >= x → y)
  ───────   ──────────────────────   ────────────────────
  100       <=12 → 13                >=85 → 85
   25       <=5  → 6                 >=17 → 17
   20       <=4  → 5                 >=16 → 16
   15       <=3  → 4                 >=10 → 10
   10       <=2  → 3                 >=7  → 7
    5       <=2  → 2                 otherwise 3
  other     <=0  → max(1, round(15% of ceiling))
            >=ceiling → max(1, floor(88% of ceiling))
"""
from __future__ import annotations

import math

# ceiling → (floor_threshold, floor_value, cap_threshold, cap_value)
SNAP_BANDS: dict[float, tuple[int, int, int, int]] = {
    100: (12, 13, 85, 85),
    25: (5, 6, 17, 17),
    20: (4, 5, 16, 16),
    15: (3, 4, 10, 10),
    10: (2, 3, 7, 7),
}

FALLBACK_FLOOR_PCT = 0.15
FALLBACK_CAP_PCT = 0.88


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def snap_to_display_score(score: float, ceiling: float) -> int:
    rounded = round_half_up(score)

    if ceiling in SNAP_BANDS:
        floor_at, floor_value, cap_at, cap_value = SNAP_BANDS[ceiling]
        if rounded <= floor_at:
            return floor_value
        if rounded >= cap_at:
            return cap_value
        return rounded

    if ceiling == 5:
        return 2 if rounded <= 2 else 3

    if rounded <= 0:
        return max(1, round_half_up(ceiling * FALLBACK_FLOOR_PCT))
    if rounded >= ceiling:
        return max(1, math.floor(ceiling * FALLBACK_CAP_PCT))
    return rounded
