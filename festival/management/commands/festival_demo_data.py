from __future__ import annotations

from django.core.management.base import BaseCommand

from festival.services import demo


class Command(BaseCommand):
    help = "Seed default settings, sample events and students for the festival"

    def add_arguments(self, parser):
        parser.add_argument("--students-per-year", type=int, default=5)
        parser.add_argument("--no-output", action="store_true", help="Suppress success output")

    def handle(self, *args, **options):
        created = demo.seed_demo_data(students_per_year=options["students_per_year"])
        if not options["no_output"]:
            self.stdout.write(
                self.style.SUCCESS(
                    f"Seeded {created['events']} events and {created['students']} students"
                )
            )
