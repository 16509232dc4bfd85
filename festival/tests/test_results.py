from __future__ import annotations

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "festival_platform.settings")

import django

django.setup()

from django.test import SimpleTestCase, TestCase

from festival import models
from festival.exceptions import InvalidTransition, ResultsLocked, StoreFailure, Unauthorized
from festival.services import results, standings
from festival.services.settings_store import FestivalSettings
from festival.tests.helpers import make_event, make_student, make_user, register, role

Mode = models.Event.Mode
Status = models.Registration.Status
HIDDEN = FestivalSettings(max_on_stage_registrations=5, max_off_stage_registrations=4)


class PointsTableTests(SimpleTestCase):
    def test_individual_points(self):
        self.assertEqual(results.points_for(Mode.INDIVIDUAL, True, "first"), ("first", 5))
        self.assertEqual(results.points_for(Mode.INDIVIDUAL, True, "second"), ("second", 3))
        self.assertEqual(results.points_for(Mode.INDIVIDUAL, True, "third"), ("third", 1))
        self.assertEqual(results.points_for(Mode.INDIVIDUAL, True, "none"), ("none", 0))

    def test_group_points(self):
        self.assertEqual(results.points_for(Mode.GROUP, True, "first"), ("first", 10))
        self.assertEqual(results.points_for(Mode.GROUP, True, "second"), ("second", 5))
        self.assertEqual(results.points_for(Mode.GROUP, True, "third"), ("third", 0))

    def test_no_show_penalty_forces_no_position(self):
        self.assertEqual(results.points_for(Mode.INDIVIDUAL, False, "first"), ("none", -3))
        self.assertEqual(results.points_for(Mode.GROUP, False, "second"), ("none", -10))

    def test_unknown_position(self):
        with self.assertRaises(ValueError):
            results.points_for(Mode.INDIVIDUAL, True, "fourth")


class RecordResultTests(TestCase):
    def setUp(self):
        self.manager = make_user("event_manager")
        self.student = make_student("second")
        self.registration = register(self.student, make_event("Duet"), Status.APPROVED)

    def test_records_and_feeds_standings(self):
        result = results.record_result(
            self.manager, role("event_manager"), self.registration.pk, participated=True, position="first", config=HIDDEN
        )
        self.assertEqual(result.points, 5)
        self.assertEqual(result.entered_by, self.manager)
        rows = {row.year: row for row in standings.current_standings()}
        self.assertEqual(rows["second"].total_points, 5)
        self.assertEqual(rows["second"].first_place_count, 1)
        entry = models.ActivityLogEntry.objects.get(action="event_result_recorded")
        self.assertEqual(entry.details["points"], 5)

    def test_re_recording_replaces_result(self):
        results.record_result(
            self.manager, role("event_manager"), self.registration.pk, participated=True, position="first", config=HIDDEN
        )
        results.record_result(
            self.manager, role("event_manager"), self.registration.pk, participated=False, position="first", config=HIDDEN
        )
        result = models.EventResult.objects.get(registration=self.registration)
        self.assertEqual(result.points, -3)
        self.assertEqual(result.position, "none")
        self.assertEqual(result.participation, models.EventResult.Participation.DID_NOT_PARTICIPATE)
        self.assertEqual(models.EventResult.objects.count(), 1)

    def test_locked_while_scoreboard_visible(self):
        visible = FestivalSettings(scoreboard_visible=True)
        with self.assertRaises(ResultsLocked):
            results.record_result(
                self.manager, role("event_manager"), self.registration.pk, participated=True, position="first", config=visible
            )
        self.assertFalse(models.EventResult.objects.exists())

    def test_unavailable_settings(self):
        with self.assertRaises(StoreFailure):
            results.record_result(
                self.manager,
                role("event_manager"),
                self.registration.pk,
                participated=True,
                config=FestivalSettings.fail_closed(),
            )

    def test_only_approved_registrations(self):
        pending = register(make_student("first"), make_event(), Status.PENDING)
        with self.assertRaises(InvalidTransition):
            results.record_result(self.manager, role("event_manager"), pending.pk, participated=True, config=HIDDEN)

    def test_coordinators_cannot_record(self):
        coordinator = make_user("second_year_coordinator")
        with self.assertRaises(Unauthorized):
            results.record_result(
                coordinator, role("second_year_coordinator"), self.registration.pk, participated=True, config=HIDDEN
            )
