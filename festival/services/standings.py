"""Per-year league table folded from event results."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from accounts.roles import YEAR_ORDER, AcademicYear, ActiveRole

from .. import models
from .settings_store import FestivalSettings

Position = models.EventResult.Position


@dataclass(frozen=True)
class StandingsRow:
    year: str
    played: int = 0
    first_place_count: int = 0
    second_place_count: int = 0
    third_place_count: int = 0
    penalty_count: int = 0
    total_points: int = 0

    @property
    def label(self) -> str:
        return AcademicYear(self.year).label

    def as_dict(self) -> dict[str, object]:
        return {
            "year": self.year,
            "label": self.label,
            "played": self.played,
            "first_place_count": self.first_place_count,
            "second_place_count": self.second_place_count,
            "third_place_count": self.third_place_count,
            "penalty_count": self.penalty_count,
            "total_points": self.total_points,
        }


def _result_year(result) -> str | None:
    registration = getattr(result, "registration", None)
    student = getattr(registration, "student", None)
    return getattr(student, "year", None)


def compute_standings(results: Iterable) -> list[StandingsRow]:
    """Fold results into one row per academic year, highest total first.

    Every year appears even without results. A negative ``points`` value
    counts as a penalty whatever the position. Ties keep year order.
    """

    tally = {
        year: {"played": 0, "first": 0, "second": 0, "third": 0, "penalties": 0, "points": 0}
        for year in YEAR_ORDER
    }
    for result in results:
        year = _result_year(result)
        if year not in tally:
            continue
        row = tally[year]
        row["played"] += 1
        row["points"] += result.points
        if result.position in (Position.FIRST, Position.SECOND, Position.THIRD):
            row[str(result.position)] += 1
        if result.points < 0:
            row["penalties"] += 1

    rows = [
        StandingsRow(
            year=year,
            played=values["played"],
            first_place_count=values["first"],
            second_place_count=values["second"],
            third_place_count=values["third"],
            penalty_count=values["penalties"],
            total_points=values["points"],
        )
        for year, values in tally.items()
    ]
    return sorted(rows, key=lambda row: row.total_points, reverse=True)


def standings_visible_to(active_role: ActiveRole | None, config: FestivalSettings) -> bool:
    if active_role is not None and active_role.is_staff:
        return True
    return config.scoreboard_visible


def current_standings() -> list[StandingsRow]:
    """Recompute the table from every stored result."""

    results = models.EventResult.objects.select_related("registration__student")
    return compute_standings(results.iterator())


__all__ = [
    "StandingsRow",
    "compute_standings",
    "current_standings",
    "standings_visible_to",
]
