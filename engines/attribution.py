"""Multi-touch attribution over a lead's touchpoint sequence.

A pure function of (touchpoints, conversion value, evaluation time). Every
non-empty distribution has credits summing to 100 and values summing to the
conversion value; an empty sequence yields an empty model.
"""
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from schemas.lead import AttributionCredit, AttributionModel

HALF_LIFE_DAYS = 7.0
POSITION_ENDPOINT_SHARE = 40.0
POSITION_MIDDLE_SHARE = 20.0


def _credit(touchpoint: dict[str, Any], credit: float, value: float) -> AttributionCredit:
    return AttributionCredit(
        touchpoint_id=str(touchpoint["id"]),
        credit=credit,
        value=value * credit / 100.0,
    )


def _ordered(touchpoints: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    # sorted() is stable, so equal timestamps keep insertion order
    return sorted(touchpoints, key=lambda tp: tp["timestamp"])


def linear_credits(touchpoints: list[dict[str, Any]], value: float) -> list[AttributionCredit]:
    share = 100.0 / len(touchpoints)
    return [_credit(tp, share, value) for tp in touchpoints]


def decay_weight(timestamp: datetime, now: datetime, half_life_days: float = HALF_LIFE_DAYS) -> float:
    """0.5 ** (age / half-life); touchpoints dated after ``now`` count as age 0."""
    age_days = max((now - timestamp).total_seconds() / 86400.0, 0.0)
    return 0.5 ** (age_days / half_life_days)


def time_decay_credits(
    touchpoints: list[dict[str, Any]], value: float, now: datetime
) -> list[AttributionCredit]:
    weights = [decay_weight(tp["timestamp"], now) for tp in touchpoints]
    total = sum(weights)
    if total <= 0:
        # every weight underflowed; fall back to an even split
        return linear_credits(touchpoints, value)
    return [_credit(tp, w / total * 100.0, value) for tp, w in zip(touchpoints, weights)]


def position_based_credits(
    touchpoints: list[dict[str, Any]], value: float
) -> list[AttributionCredit]:
    """40% first, 40% last, 20% across the middle.

    One touchpoint takes 100%. With exactly two there is no middle, so the 20%
    is shared evenly between the endpoints (50/50) to keep the total at 100.
    """
    count = len(touchpoints)
    if count == 1:
        return [_credit(touchpoints[0], 100.0, value)]
    if count == 2:
        return [_credit(tp, 50.0, value) for tp in touchpoints]

    middle_share = POSITION_MIDDLE_SHARE / (count - 2)
    credits = [_credit(touchpoints[0], POSITION_ENDPOINT_SHARE, value)]
    credits.extend(_credit(tp, middle_share, value) for tp in touchpoints[1:-1])
    credits.append(_credit(touchpoints[-1], POSITION_ENDPOINT_SHARE, value))
    return credits


def compute_attribution(
    touchpoints: Sequence[dict[str, Any]],
    conversion_value: float,
    now: Optional[datetime] = None,
) -> AttributionModel:
    """Compute all five attribution distributions.

    touchpoints: dicts with at least ``id`` and a timezone-aware ``timestamp``.
    """
    if not touchpoints:
        return AttributionModel()

    now = now or datetime.now(timezone.utc)
    ordered = _ordered(touchpoints)
    return AttributionModel(
        first_touch=_credit(ordered[0], 100.0, conversion_value),
        last_touch=_credit(ordered[-1], 100.0, conversion_value),
        linear=linear_credits(ordered, conversion_value),
        time_decay=time_decay_credits(ordered, conversion_value, now),
        position_based=position_based_credits(ordered, conversion_value),
    )
