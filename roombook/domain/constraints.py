"""Domain-level errors and validation rules for the scheduling engine."""

from __future__ import annotations

from dataclasses import dataclass


class SchedulingError(Exception):
    """Base class for scheduling engine precondition failures."""


class InvalidInterval(SchedulingError, ValueError):
    """Raised when an interval is empty, inverted, or not timezone-aware."""


class InvalidArgument(SchedulingError, ValueError):
    """Raised when an engine argument violates its precondition."""


@dataclass(frozen=True)
class ScoringConfig:
    """Weights for ranking available rooms against a requested headcount.

    Fit thresholds are percentages of the requested capacity so that the
    comparison stays in integer arithmetic (``capacity * 100 <= desired * 120``).
    """

    ideal_fit_percent: int = 120
    slight_fit_percent: int = 150
    ideal_fit_points: int = 50
    slight_fit_points: int = 35
    oversized_points: int = 20
    wifi_points: int = 15
    screen_points: int = 15
    size_bracket_points: int = 10
    max_score: int = 100
    max_suggestions: int = 10
    wifi_keywords: tuple[str, ...] = ("wifi",)
    screen_keywords: tuple[str, ...] = ("écran", "monitor")


def validate_scoring_config(config: ScoringConfig) -> None:
    if config.ideal_fit_percent < 100:
        raise InvalidArgument("ideal_fit_percent must be >= 100")
    if config.slight_fit_percent < config.ideal_fit_percent:
        raise InvalidArgument("slight_fit_percent must be >= ideal_fit_percent")
    if config.max_score <= 0:
        raise InvalidArgument("max_score must be > 0")
    if config.max_suggestions <= 0:
        raise InvalidArgument("max_suggestions must be > 0")
    for name in (
        "ideal_fit_points",
        "slight_fit_points",
        "oversized_points",
        "wifi_points",
        "screen_points",
        "size_bracket_points",
    ):
        if getattr(config, name) < 0:
            raise InvalidArgument(f"{name} must be >= 0")


def validate_desired_capacity(desired_capacity: int) -> None:
    if isinstance(desired_capacity, bool) or not isinstance(desired_capacity, int):
        raise InvalidArgument("desired_capacity must be an integer")
    if desired_capacity <= 0:
        raise InvalidArgument("desired_capacity must be > 0")
