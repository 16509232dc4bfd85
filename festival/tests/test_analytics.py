from __future__ import annotations

import os
from types import SimpleNamespace

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "festival_platform.settings")

import django

django.setup()

from django.test import SimpleTestCase, TestCase

from festival import models
from festival.exceptions import ScopeUnresolved
from festival.services import analytics
from festival.services.settings_store import FestivalSettings
from festival.tests.helpers import make_event, make_student, make_user, register, role

Status = models.Registration.Status
ON_STAGE = models.Event.Category.ON_STAGE
OFF_STAGE = models.Event.Category.OFF_STAGE


def _event(pk, name, category=ON_STAGE, cap=None):
    return SimpleNamespace(pk=pk, name=name, category=category, max_entries_per_year=cap)


def _registration(event_id, student_id, year, status=Status.APPROVED):
    student = SimpleNamespace(year=year, name=f"S{student_id}", roll_number=f"R{student_id}")
    return SimpleNamespace(event_id=event_id, student_id=student_id, status=status, student=student)


class ComputeEventAnalyticsTests(SimpleTestCase):
    def setUp(self):
        self.events = [
            _event(1, "Solo Singing", cap=10),
            _event(2, "Mime", cap=5),
            _event(3, "Essay Writing", OFF_STAGE),
        ]

    def test_pending_and_approved_fill_capacity(self):
        rows = [_registration(1, n, "first") for n in range(9)]
        rows.append(_registration(1, 9, "first", Status.PENDING))
        result = analytics.compute_event_analytics(rows, self.events)
        solo = result.events[0]
        self.assertEqual(solo.per_year["first"], 10)
        self.assertEqual(solo.occupancy_rate("first"), 100)
        self.assertEqual(solo.years_at_or_above(100), ["first"])
        self.assertIn(solo, result.capacity_watch)

    def test_rejected_only_counts_towards_rejection_rate(self):
        rows = [
            _registration(1, 1, "first"),
            _registration(1, 2, "first", Status.REJECTED),
            _registration(2, 3, "second", Status.REJECTED),
            _registration(2, 4, "second", Status.PENDING),
        ]
        result = analytics.compute_event_analytics(rows, self.events)
        self.assertEqual(result.total_registrations, 2)
        self.assertEqual(result.rejected_count, 2)
        self.assertEqual(result.rejection_rate, 50)
        self.assertEqual(result.events[0].per_year["first"], 1)
        self.assertEqual(result.events[0].rejected, 1)
        self.assertEqual(result.unique_students, 2)

    def test_uncapped_events_have_no_occupancy(self):
        result = analytics.compute_event_analytics([_registration(3, 1, "third")], self.events)
        essay = result.events[2]
        self.assertIsNone(essay.occupancy_rate("third"))
        self.assertEqual(essay.peak_occupancy, 0.0)
        self.assertEqual(result.category_totals, {OFF_STAGE: 1})

    def test_near_capacity_threshold(self):
        rows = [_registration(2, n, "second") for n in range(4)]
        result = analytics.compute_event_analytics(rows, self.events)
        mime = result.events[1]
        self.assertEqual(mime.occupancy_rate("second"), 80)
        self.assertEqual(result.capacity_watch, [mime])
        self.assertEqual(mime.years_at_or_above(100), [])

    def test_top_and_low_participation_lists(self):
        rows = [_registration(1, n, "first") for n in range(6)]
        rows += [_registration(2, n, "second") for n in range(2)]
        result = analytics.compute_event_analytics(rows, self.events, top_n=2)
        self.assertEqual([event.name for event in result.top_events], ["Solo Singing", "Mime"])
        self.assertEqual([event.name for event in result.needs_attention], ["Essay Writing", "Mime"])

    def test_participation_gaps(self):
        rows = [_registration(1, 1, "first"), _registration(1, 2, "third")]
        result = analytics.compute_event_analytics(rows, self.events)
        self.assertEqual(result.participation_gaps[1], ["second", "fourth"])
        self.assertEqual(result.participation_gaps[3], ["first", "second", "third", "fourth"])
        self.assertEqual(result.year_participation, {"first": 1, "second": 0, "third": 1, "fourth": 0})

    def test_students_at_limit(self):
        limits = FestivalSettings(max_on_stage_registrations=2, max_off_stage_registrations=4)
        rows = [_registration(1, 1, "first"), _registration(2, 1, "first"), _registration(1, 2, "first")]
        result = analytics.compute_event_analytics(rows, self.events, limits=limits)
        self.assertEqual([student.student_id for student in result.students_at_limit], [1])
        self.assertEqual(result.students_at_limit[0].on_stage, 2)

    def test_idempotent(self):
        rows = [_registration(1, n, "first") for n in range(3)] + [_registration(2, 9, "fourth", Status.REJECTED)]
        first = analytics.compute_event_analytics(rows, self.events).as_dict()
        second = analytics.compute_event_analytics(rows, self.events).as_dict()
        self.assertEqual(first, second)


class AnalyticsForTests(TestCase):
    def setUp(self):
        self.event = make_event("Group Song", max_entries_per_year=2)
        self.first = make_student("first")
        self.second = make_student("second")
        register(self.first, self.event, Status.APPROVED)
        register(self.second, self.event, Status.PENDING)

    def test_coordinator_sees_own_year_only(self):
        user = make_user("first_year_coordinator")
        result = analytics.analytics_for(role("first_year_coordinator"), user)
        self.assertEqual(result.total_registrations, 1)
        self.assertEqual(result.events[0].per_year["second"], 0)

    def test_admin_sees_all(self):
        user = make_user("admin")
        result = analytics.analytics_for(role("admin"), user)
        self.assertEqual(result.total_registrations, 2)
        self.assertEqual(result.events[0].occupancy_rate("first"), 50)

    def test_unresolved_coordinator(self):
        user = make_user("fifth_year_coordinator")
        with self.assertRaises(ScopeUnresolved):
            analytics.analytics_for(role("fifth_year_coordinator"), user)
