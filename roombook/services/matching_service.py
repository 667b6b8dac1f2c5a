"""Room matching: rank conflict-free rooms by capacity fit and equipment."""

from __future__ import annotations

from dataclasses import replace
from typing import Mapping, Optional, Sequence

from roombook.domain.constraints import (
    ScoringConfig,
    validate_desired_capacity,
    validate_scoring_config,
)
from roombook.domain.models import Interval, Reservation, Room, Suggestion
from roombook.repository.data_repository import DataRepository
from roombook.services.conflict_service import find_conflict, require_interval
from roombook.utils.config import Settings, get_settings
from roombook.utils.logger import get_logger


logger = get_logger(__name__)


def _has_tag_matching(room: Room, keywords: Sequence[str]) -> bool:
    lowered_keywords = [keyword.lower() for keyword in keywords]
    return any(
        keyword in tag.lower()
        for tag in room.equipment_tags
        for keyword in lowered_keywords
    )


def _capacity_fit_points(room: Room, desired_capacity: int, config: ScoringConfig) -> int:
    scaled_capacity = room.capacity * 100
    if scaled_capacity <= desired_capacity * config.ideal_fit_percent:
        return config.ideal_fit_points
    if scaled_capacity <= desired_capacity * config.slight_fit_percent:
        return config.slight_fit_points
    return config.oversized_points


def _size_bracket_points(room: Room, desired_capacity: int, config: ScoringConfig) -> int:
    points = 0
    if desired_capacity <= 4 and room.capacity <= 8:
        points += config.size_bracket_points
    if 4 < desired_capacity <= 12 and 8 <= room.capacity <= 16:
        points += config.size_bracket_points
    if desired_capacity > 12 and room.capacity >= 16:
        points += config.size_bracket_points
    return points


def score_room(room: Room, desired_capacity: int, config: Optional[ScoringConfig] = None) -> int:
    """Score a room that already passed the capacity floor, clamped to [0, max_score]."""
    config = config or ScoringConfig()
    score = _capacity_fit_points(room, desired_capacity, config)
    if _has_tag_matching(room, config.wifi_keywords):
        score += config.wifi_points
    if _has_tag_matching(room, config.screen_keywords):
        score += config.screen_points
    score += _size_bracket_points(room, desired_capacity, config)
    return max(0, min(config.max_score, score))


def _is_eligible(room: Room, site_id: Optional[str]) -> bool:
    if not room.is_active:
        return False
    return site_id is None or room.site_id == site_id


def recommend(
    desired_capacity: int,
    window: Interval,
    candidate_rooms: Sequence[Room],
    reservations_by_room: Mapping[str, Sequence[Reservation]],
    *,
    site_id: Optional[str] = None,
    config: Optional[ScoringConfig] = None,
) -> list[Suggestion]:
    """Return up to ``config.max_suggestions`` free rooms, best fit first.

    Capacity is a hard floor and any conflicting reservation excludes a room;
    there is no partial availability. Ordering is score descending, then
    capacity ascending, then input order.
    """
    validate_desired_capacity(desired_capacity)
    require_interval(window, "window")
    config = config or ScoringConfig()
    validate_scoring_config(config)

    suggestions: list[Suggestion] = []
    for room in candidate_rooms:
        if not _is_eligible(room, site_id):
            continue
        if room.capacity < desired_capacity:
            continue
        if find_conflict(window, reservations_by_room.get(room.room_id, ())) is not None:
            continue
        score = score_room(room, desired_capacity, config)
        if score <= 0:
            continue
        suggestions.append(Suggestion(room=room, match_score=score, available=True))

    suggestions.sort(key=lambda item: (-item.match_score, item.room.capacity))
    ranked = suggestions[: config.max_suggestions]
    logger.debug(
        "Recommendation ranked | desired_capacity=%s | candidates=%s | available=%s | returned=%s",
        desired_capacity,
        len(candidate_rooms),
        len(suggestions),
        len(ranked),
    )
    return ranked


def find_first_free_room(
    window: Interval,
    candidate_rooms: Sequence[Room],
    reservations_by_room: Mapping[str, Sequence[Reservation]],
    *,
    desired_capacity: Optional[int] = None,
    site_id: Optional[str] = None,
) -> Optional[Room]:
    """Smallest eligible room with no conflict in ``window``, or None."""
    require_interval(window, "window")
    if desired_capacity is not None:
        validate_desired_capacity(desired_capacity)

    eligible = [
        room
        for room in candidate_rooms
        if _is_eligible(room, site_id)
        and (desired_capacity is None or room.capacity >= desired_capacity)
    ]
    for room in sorted(eligible, key=lambda item: item.capacity):
        if find_conflict(window, reservations_by_room.get(room.room_id, ())) is None:
            return room
    return None


class RoomRecommendationService:
    """Feeds the catalog and active reservations from storage into the matcher."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        scoring_config: Optional[ScoringConfig] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._scoring_config = replace(
            scoring_config or ScoringConfig(),
            max_suggestions=self._settings.suggestion_max_results,
        )
        validate_scoring_config(self._scoring_config)

    def _load_catalog(
        self,
        window: Interval,
        site_id: Optional[str],
    ) -> tuple[list[Room], dict[str, list[Reservation]]]:
        rooms = self._repository.list_rooms(active_only=True, site_id=site_id)
        reservations_by_room = self._repository.list_active_reservations_by_room(
            window=window,
            room_ids=[room.room_id for room in rooms],
        )
        return rooms, reservations_by_room

    def suggest_rooms(
        self,
        *,
        desired_capacity: int,
        window: Interval,
        site_id: Optional[str] = None,
    ) -> list[Suggestion]:
        validate_desired_capacity(desired_capacity)
        rooms, reservations_by_room = self._load_catalog(window, site_id)
        suggestions = recommend(
            desired_capacity,
            window,
            rooms,
            reservations_by_room,
            site_id=site_id,
            config=self._scoring_config,
        )
        logger.info(
            "Room suggestions computed | desired_capacity=%s | site_id=%s | rooms_checked=%s | suggestions=%s",
            desired_capacity,
            site_id,
            len(rooms),
            len(suggestions),
        )
        return suggestions

    def first_free_room(
        self,
        *,
        window: Interval,
        desired_capacity: Optional[int] = None,
        site_id: Optional[str] = None,
    ) -> Optional[Room]:
        rooms, reservations_by_room = self._load_catalog(window, site_id)
        room = find_first_free_room(
            window,
            rooms,
            reservations_by_room,
            desired_capacity=desired_capacity,
            site_id=site_id,
        )
        logger.info(
            "First free room lookup | desired_capacity=%s | site_id=%s | room_id=%s",
            desired_capacity,
            site_id,
            room.room_id if room else None,
        )
        return room
