from __future__ import annotations

import io
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "festival_platform.settings")

import django

django.setup()

from django.core.management import call_command
from django.test import TestCase

from festival import models


class DemoDataCommandTests(TestCase):
    def test_seeds_events_and_students(self):
        out = io.StringIO()
        call_command("festival_demo_data", "--students-per-year", "2", stdout=out)
        self.assertEqual(models.Event.objects.count(), 7)
        self.assertEqual(models.Student.objects.count(), 8)
        self.assertIn("Seeded 7 events and 8 students", out.getvalue())

    def test_rerun_is_harmless(self):
        call_command("festival_demo_data", "--no-output")
        call_command("festival_demo_data", "--no-output")
        self.assertEqual(models.Event.objects.count(), 7)
        self.assertEqual(models.Student.objects.count(), 20)
        self.assertEqual(models.Setting.objects.count(), 5)
