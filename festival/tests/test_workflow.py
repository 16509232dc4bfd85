from __future__ import annotations

import os
from datetime import timedelta

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "festival_platform.settings")

import django

django.setup()

from django.test import TestCase
from django.utils import timezone

from festival import models
from festival.exceptions import (
    CapacityReached,
    DuplicateRegistration,
    InvalidTransition,
    NotFound,
    QuotaExceeded,
    RegistrationsGloballyClosed,
    RegistrationWindowClosed,
    ResultsLocked,
    ScopeUnresolved,
    Unauthorized,
)
from festival.services import results, settings_store, standings, workflow
from festival.services.settings_store import FestivalSettings
from festival.tests.helpers import make_event, make_student, make_user, register, role

Status = models.Registration.Status
OPEN = FestivalSettings(max_on_stage_registrations=5, max_off_stage_registrations=4)


class CreateRegistrationTests(TestCase):
    def setUp(self):
        self.admin = make_user("admin")
        self.student_user = make_user("student")
        self.student = make_student("second", user=self.student_user)
        self.event = make_event("Solo Singing", registration_deadline=timezone.now() + timedelta(days=3))

    def test_student_registers_self_as_pending(self):
        registration = workflow.create_registration(
            self.student_user,
            role("student"),
            student_id=self.student.pk,
            event_id=self.event.pk,
            config=OPEN,
        )
        self.assertEqual(registration.status, Status.PENDING)
        self.assertEqual(registration.registration_method, "student")
        entry = models.ActivityLogEntry.objects.get(action="registration_created")
        self.assertEqual(entry.user, self.student_user)
        self.assertEqual(entry.details["event_id"], self.event.pk)
        self.assertEqual(entry.details["active_role"], "student")

    def test_staff_registration_is_marked_staff(self):
        registration = workflow.create_registration(
            self.admin, role("admin"), student_id=self.student.pk, event_id=self.event.pk, config=OPEN
        )
        self.assertEqual(registration.registration_method, "staff")

    def test_auto_approve_skips_pending(self):
        config = FestivalSettings(
            max_on_stage_registrations=5, max_off_stage_registrations=4, auto_approve_registrations=True
        )
        registration = workflow.create_registration(
            self.admin, role("admin"), student_id=self.student.pk, event_id=self.event.pk, config=config
        )
        self.assertEqual(registration.status, Status.APPROVED)

    def test_student_cannot_register_someone_else(self):
        other = make_student("second")
        with self.assertRaises(Unauthorized):
            workflow.create_registration(
                self.student_user, role("student"), student_id=other.pk, event_id=self.event.pk, config=OPEN
            )
        self.assertFalse(models.Registration.objects.exists())

    def test_role_not_held_is_refused(self):
        with self.assertRaises(Unauthorized):
            workflow.create_registration(
                self.student_user, role("admin"), student_id=self.student.pk, event_id=self.event.pk, config=OPEN
            )

    def test_coordinator_limited_to_own_year(self):
        coordinator = make_user("first_year_coordinator")
        with self.assertRaises(Unauthorized):
            workflow.create_registration(
                coordinator,
                role("first_year_coordinator"),
                student_id=self.student.pk,
                event_id=self.event.pk,
                config=OPEN,
            )
        first_year = make_student("first")
        registration = workflow.create_registration(
            coordinator,
            role("first_year_coordinator"),
            student_id=first_year.pk,
            event_id=self.event.pk,
            config=OPEN,
        )
        self.assertEqual(registration.student, first_year)

    def test_unknown_coordinator_year_is_unresolved(self):
        coordinator = make_user("fifth_year_coordinator")
        with self.assertRaises(ScopeUnresolved):
            workflow.create_registration(
                coordinator,
                role("fifth_year_coordinator"),
                student_id=self.student.pk,
                event_id=self.event.pk,
                config=OPEN,
            )

    def test_kill_switch_refuses_even_when_quota_and_deadline_allow(self):
        closed = FestivalSettings(
            max_on_stage_registrations=5, max_off_stage_registrations=4, global_registration_open=False
        )
        with self.assertRaises(RegistrationsGloballyClosed) as ctx:
            workflow.create_registration(
                self.admin, role("admin"), student_id=self.student.pk, event_id=self.event.pk, config=closed
            )
        self.assertFalse(ctx.exception.context["registration_open"])

    def test_deadline_passed(self):
        event = make_event(registration_deadline=timezone.now() - timedelta(minutes=1))
        with self.assertRaises(RegistrationWindowClosed) as ctx:
            workflow.create_registration(
                self.admin, role("admin"), student_id=self.student.pk, event_id=event.pk, config=OPEN
            )
        self.assertEqual(ctx.exception.context["deadline"], event.registration_deadline.isoformat())

    def test_inactive_event_is_not_found(self):
        event = make_event(is_active=False)
        with self.assertRaises(NotFound):
            workflow.create_registration(
                self.admin, role("admin"), student_id=self.student.pk, event_id=event.pk, config=OPEN
            )

    def test_quota_exceeded_reports_count_and_limit(self):
        for _ in range(5):
            register(self.student, make_event())
        with self.assertRaises(QuotaExceeded) as ctx:
            workflow.create_registration(
                self.admin, role("admin"), student_id=self.student.pk, event_id=self.event.pk, config=OPEN
            )
        self.assertEqual(ctx.exception.context["current_count"], 5)
        self.assertEqual(ctx.exception.context["limit"], 5)
        self.assertEqual(models.Registration.objects.filter(event=self.event).count(), 0)

    def test_rejected_registration_frees_quota(self):
        for _ in range(4):
            register(self.student, make_event())
        register(self.student, make_event(), Status.REJECTED)
        registration = workflow.create_registration(
            self.admin, role("admin"), student_id=self.student.pk, event_id=self.event.pk, config=OPEN
        )
        self.assertEqual(registration.status, Status.PENDING)

    def test_duplicate_registration(self):
        register(self.student, self.event)
        with self.assertRaises(DuplicateRegistration):
            workflow.create_registration(
                self.admin, role("admin"), student_id=self.student.pk, event_id=self.event.pk, config=OPEN
            )

    def test_per_year_capacity(self):
        event = make_event(max_entries_per_year=1)
        register(make_student("second"), event)
        with self.assertRaises(CapacityReached):
            workflow.create_registration(
                self.admin, role("admin"), student_id=self.student.pk, event_id=event.pk, config=OPEN
            )
        other_year = make_student("third")
        registration = workflow.create_registration(
            self.admin, role("admin"), student_id=other_year.pk, event_id=event.pk, config=OPEN
        )
        self.assertEqual(registration.event, event)

    def test_one_group_per_year(self):
        event = make_event(mode=models.Event.Mode.GROUP)
        register(make_student("second"), event, group_id="team-a")
        same_team = workflow.create_registration(
            self.admin,
            role("admin"),
            student_id=self.student.pk,
            event_id=event.pk,
            group_id="team-a",
            config=OPEN,
        )
        self.assertEqual(same_team.group_id, "team-a")
        with self.assertRaises(CapacityReached):
            workflow.create_registration(
                self.admin,
                role("admin"),
                student_id=make_student("second").pk,
                event_id=event.pk,
                group_id="team-b",
                config=OPEN,
            )


class StatusTransitionTests(TestCase):
    def setUp(self):
        self.admin = make_user("admin")
        self.student = make_student("third")
        self.registration = register(self.student, make_event())

    def test_approve_pending(self):
        updated = workflow.approve_registration(self.admin, role("admin"), self.registration.pk)
        self.assertEqual(updated.status, Status.APPROVED)
        self.registration.refresh_from_db()
        self.assertEqual(updated.updated_at, self.registration.updated_at)
        self.assertEqual(self.registration.status, Status.APPROVED)
        entry = models.ActivityLogEntry.objects.get(action="registration_status_updated")
        self.assertEqual(entry.details["old_status"], "pending")
        self.assertEqual(entry.details["new_status"], "approved")

    def test_reject_pending(self):
        workflow.reject_registration(self.admin, role("admin"), self.registration.pk)
        self.registration.refresh_from_db()
        self.assertEqual(self.registration.status, Status.REJECTED)

    def test_terminal_states_do_not_move(self):
        workflow.approve_registration(self.admin, role("admin"), self.registration.pk)
        with self.assertRaises(InvalidTransition):
            workflow.reject_registration(self.admin, role("admin"), self.registration.pk)
        self.registration.refresh_from_db()
        self.assertEqual(self.registration.status, Status.APPROVED)

    def test_nothing_moves_back_to_pending(self):
        with self.assertRaises(InvalidTransition):
            workflow.set_registration_status(self.admin, role("admin"), self.registration.pk, Status.PENDING)

    def test_student_cannot_approve(self):
        user = make_user("student")
        with self.assertRaises(Unauthorized):
            workflow.approve_registration(user, role("student"), self.registration.pk)

    def test_coordinator_scope(self):
        own = make_user("third_year_coordinator")
        other = make_user("first_year_coordinator")
        with self.assertRaises(Unauthorized):
            workflow.approve_registration(other, role("first_year_coordinator"), self.registration.pk)
        workflow.approve_registration(own, role("third_year_coordinator"), self.registration.pk)
        self.registration.refresh_from_db()
        self.assertEqual(self.registration.status, Status.APPROVED)

    def test_missing_registration(self):
        with self.assertRaises(NotFound):
            workflow.approve_registration(self.admin, role("admin"), 999999)


class DeleteRegistrationTests(TestCase):
    def setUp(self):
        self.manager = make_user("event_manager")
        self.student = make_student("first", name="Asha")
        self.event = make_event("Mime")

    def test_delete_from_any_state(self):
        for status in (Status.PENDING, Status.APPROVED, Status.REJECTED):
            registration = register(self.student, self.event, status)
            details = workflow.delete_registration(self.manager, role("event_manager"), registration.pk)
            self.assertEqual(details["status"], status)
            self.assertFalse(models.Registration.objects.filter(pk=registration.pk).exists())
        entries = models.ActivityLogEntry.objects.filter(action="registration_deleted")
        self.assertEqual(entries.count(), 3)
        self.assertEqual(entries.first().details["student_name"], "Asha")
        self.assertEqual(entries.first().details["event_name"], "Mime")

    def test_delete_frees_quota(self):
        config = FestivalSettings(max_on_stage_registrations=1, max_off_stage_registrations=1)
        registration = register(self.student, self.event)
        workflow.delete_registration(self.manager, role("event_manager"), registration.pk)
        created = workflow.create_registration(
            self.manager,
            role("event_manager"),
            student_id=self.student.pk,
            event_id=make_event().pk,
            config=config,
        )
        self.assertEqual(created.status, Status.PENDING)

    def test_result_survives_while_scoreboard_public(self):
        registration = register(make_student("second"), make_event("Duet"), Status.APPROVED)
        results.record_result(self.manager, role("event_manager"), registration.pk, participated=True, position="first")
        settings_store.update_setting(
            make_user("admin"), role("admin"), settings_store.SCOREBOARD_VISIBLE, {"enabled": True}
        )

        with self.assertRaises(ResultsLocked):
            workflow.delete_registration(self.manager, role("event_manager"), registration.pk)

        self.assertTrue(models.Registration.objects.filter(pk=registration.pk).exists())
        rows = {row.year: row for row in standings.current_standings()}
        self.assertEqual(rows["second"].total_points, 5)
        self.assertFalse(models.ActivityLogEntry.objects.filter(action="registration_deleted").exists())

    def test_result_can_go_while_scoreboard_hidden(self):
        registration = register(self.student, self.event, Status.APPROVED)
        results.record_result(self.manager, role("event_manager"), registration.pk, participated=False)
        workflow.delete_registration(self.manager, role("event_manager"), registration.pk)
        self.assertFalse(models.EventResult.objects.exists())
