"""Sample records for local development."""
from __future__ import annotations

import logging
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from accounts.roles import YEAR_ORDER

from .. import models

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "max_on_stage_registrations": {"limit": 5},
    "max_off_stage_registrations": {"limit": 4},
    "global_registration_open": {"enabled": True},
    "auto_approve_registrations": {"enabled": False},
    "scoreboard_visible": {"enabled": False},
}

DEMO_EVENTS = [
    ("Solo Singing", models.Event.Category.ON_STAGE, models.Event.Mode.INDIVIDUAL, 2),
    ("Group Dance", models.Event.Category.ON_STAGE, models.Event.Mode.GROUP, None),
    ("Mime", models.Event.Category.ON_STAGE, models.Event.Mode.GROUP, None),
    ("Elocution", models.Event.Category.ON_STAGE, models.Event.Mode.INDIVIDUAL, 3),
    ("Pencil Drawing", models.Event.Category.OFF_STAGE, models.Event.Mode.INDIVIDUAL, 3),
    ("Essay Writing", models.Event.Category.OFF_STAGE, models.Event.Mode.INDIVIDUAL, 2),
    ("Photography", models.Event.Category.OFF_STAGE, models.Event.Mode.INDIVIDUAL, 2),
]

DEPARTMENTS = ["Computer Science", "Electronics", "Mechanical", "Civil"]


@transaction.atomic
def seed_demo_data(students_per_year: int = 5) -> dict[str, int]:
    """Create default settings, sample events and students. Safe to re-run."""

    for key, value in DEFAULT_SETTINGS.items():
        models.Setting.objects.get_or_create(key=key, defaults={"value": value})

    deadline = timezone.now() + timedelta(days=14)
    events_created = 0
    for name, category, mode, per_year in DEMO_EVENTS:
        _, created = models.Event.objects.get_or_create(
            name=name,
            defaults={
                "category": category,
                "mode": mode,
                "max_entries_per_year": per_year,
                "min_team_size": 4 if mode == models.Event.Mode.GROUP else None,
                "max_team_size": 10 if mode == models.Event.Mode.GROUP else None,
                "registration_deadline": deadline,
                "event_date": deadline + timedelta(days=3),
                "venue": "Main Auditorium" if category == models.Event.Category.ON_STAGE else "Seminar Hall",
            },
        )
        events_created += int(created)

    students_created = 0
    for year_index, year in enumerate(YEAR_ORDER, start=1):
        for number in range(1, students_per_year + 1):
            roll_number = f"FEST{year_index}{number:03d}"
            _, created = models.Student.objects.get_or_create(
                roll_number=roll_number,
                defaults={
                    "name": f"Demo Student {year_index}-{number}",
                    "department": DEPARTMENTS[(number - 1) % len(DEPARTMENTS)],
                    "year": year,
                },
            )
            students_created += int(created)

    logger.info("demo data seeded: %d events, %d students", events_created, students_created)
    return {"events": events_created, "students": students_created}
