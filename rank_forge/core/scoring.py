"""Score calculator — pure functions from period metrics to ranking scores.

Trend score (0-100) is a weighted sum of six normalised signals:

    usage        25%   min(usage_count, 100)
    users        20%   min(unique_users * 5, 100)
    success      20%   success_rate (already 0-100)
    rating       15%   average_rating / 5 * 100
    favorites    10%   min(favorite_count * 10, 100)
    performance  10%   max(0, 100 - average_execution_time_ms / 1000)

Weighted score is a secondary signal that compresses extreme usage counts.
Velocity measures how quickly usage accumulated inside the period, and growth
rate compares usage against the preceding period of the same kind.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TrendWeights:
    """Relative weight of each normalised signal. Sums to 1."""

    usage: float = 0.25
    users: float = 0.20
    success: float = 0.20
    rating: float = 0.15
    favorites: float = 0.10
    performance: float = 0.10

    def total(self) -> float:
        return (
            self.usage + self.users + self.success + self.rating + self.favorites + self.performance
        )


DEFAULT_WEIGHTS = TrendWeights()


def normalise_signals(
    usage_count: int,
    unique_users: int,
    success_rate: float,
    average_rating: float,
    favorite_count: int,
    average_execution_time: float,
) -> dict[str, float]:
    """Map raw metrics onto a common 0-100 scale."""
    return {
        "usage": min(usage_count, 100),
        "users": min(unique_users * 5, 100),
        "success": success_rate,
        "rating": average_rating / 5 * 100,
        "favorites": min(favorite_count * 10, 100),
        "performance": max(0.0, 100 - average_execution_time / 1000),
    }


def trend_score(
    usage_count: int,
    unique_users: int,
    success_rate: float,
    average_rating: float = 0.0,
    favorite_count: int = 0,
    average_execution_time: float = 0.0,
    weights: TrendWeights = DEFAULT_WEIGHTS,
) -> float:
    """Primary ranking signal, rounded to 2 decimals."""
    signals = normalise_signals(
        usage_count,
        unique_users,
        success_rate,
        average_rating,
        favorite_count,
        average_execution_time,
    )
    score = (
        signals["usage"] * weights.usage
        + signals["users"] * weights.users
        + signals["success"] * weights.success
        + signals["rating"] * weights.rating
        + signals["favorites"] * weights.favorites
        + signals["performance"] * weights.performance
    )
    return round(score, 2)


def weighted_score(
    trend: float,
    usage_count: int,
    unique_users: int,
    average_rating: float = 0.0,
) -> float:
    return (
        trend * 0.4
        + min(usage_count, 50) * 0.3
        + min(unique_users * 2, 30) * 0.2
        + (average_rating / 5) * 20 * 0.1
    )


def velocity_score(timestamps: Sequence[datetime]) -> float:
    """Adoption speed: usages per hour between first and last use, x10, capped at 100.

    Fewer than two usages score 0; a burst where every usage shares one instant
    scores 100.
    """
    if len(timestamps) < 2:
        return 0.0

    ordered = sorted(timestamps)
    span = (ordered[-1] - ordered[0]).total_seconds()
    if span == 0:
        return 100.0

    per_hour = len(ordered) / (span / 3600)
    return min(per_hour * 10, 100.0)


def growth_rate(current_count: int, previous_count: int) -> float:
    """Signed percentage change against the previous period; unbounded above."""
    if previous_count == 0:
        return 100.0 if current_count > 0 else 0.0
    return (current_count - previous_count) / previous_count * 100
