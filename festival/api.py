"""REST API over the registration engine.

Views resolve the caller's active role, delegate to :mod:`festival.services`
and translate engine denials into HTTP responses.
"""

from __future__ import annotations

import logging

from django.conf import settings
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.roles import ActiveRole, normalise_roles, role_label

from . import exceptions, models
from .serializers import (
    ActiveRoleSerializer,
    ActivityLogEntrySerializer,
    EligibilityQuerySerializer,
    EventResultInputSerializer,
    EventResultSerializer,
    EventSerializer,
    RegistrationCreateSerializer,
    RegistrationSerializer,
    SettingUpdateSerializer,
    StudentSerializer,
)
from .services import activity, analytics, catalog, eligibility, results, settings_store, standings, workflow
from .services.scoping import ensure_role_held, scope_events, scope_registrations, scope_students

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    exceptions.Unauthorized: status.HTTP_403_FORBIDDEN,
    exceptions.ScopeUnresolved: status.HTTP_403_FORBIDDEN,
    exceptions.NotFound: status.HTTP_404_NOT_FOUND,
    exceptions.QuotaExceeded: status.HTTP_409_CONFLICT,
    exceptions.DuplicateRegistration: status.HTTP_409_CONFLICT,
    exceptions.CapacityReached: status.HTTP_409_CONFLICT,
    exceptions.ResultsLocked: status.HTTP_409_CONFLICT,
    exceptions.InvalidTransition: status.HTTP_409_CONFLICT,
    exceptions.RegistrationWindowClosed: status.HTTP_423_LOCKED,
    exceptions.RegistrationsGloballyClosed: status.HTTP_423_LOCKED,
    exceptions.StoreFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: exceptions.RegistrationError) -> int:
    for klass in type(exc).__mro__:
        if klass in ERROR_STATUS:
            return ERROR_STATUS[klass]
    return status.HTTP_400_BAD_REQUEST


def requested_role(request) -> str | None:
    header = request.META.get(settings.FESTIVAL_ACTIVE_ROLE_HEADER)
    if header:
        return header.strip().lower()
    return request.session.get(settings.FESTIVAL_ACTIVE_ROLE_SESSION_KEY)


class FestivalAPIMixin:
    """Active-role resolution and engine error translation shared by every view."""

    permission_classes = [permissions.IsAuthenticated]

    def get_active_role(self) -> ActiveRole | None:
        if not hasattr(self, "_active_role"):
            self._active_role = ActiveRole.for_user(self.request.user, requested_role(self.request))
        return self._active_role

    def handle_exception(self, exc):
        if isinstance(exc, exceptions.RegistrationError):
            return Response(exc.as_dict(), status=status_for(exc))
        if isinstance(exc, ValueError):
            return Response({"detail": str(exc), "code": "invalid"}, status=status.HTTP_400_BAD_REQUEST)
        return super().handle_exception(exc)


def _pk(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise exceptions.NotFound("Registration not found.", registration_id=value) from exc


class RegistrationViewSet(FestivalAPIMixin, viewsets.GenericViewSet):
    serializer_class = RegistrationSerializer

    def get_queryset(self):
        scope = scope_registrations(self.get_active_role(), self.request.user)
        scope.raise_if_unresolved()
        queryset = scope.apply(models.Registration.objects.select_related("student", "event"))
        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("event"):
            queryset = queryset.filter(event_id=params["event"])
        if params.get("category"):
            queryset = queryset.filter(event__category=params["category"])
        return queryset

    def list(self, request, *args, **kwargs):
        queryset = self.get_queryset()
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(queryset, many=True).data)

    def create(self, request, *args, **kwargs):
        serializer = RegistrationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        registration = workflow.create_registration(
            request.user,
            self.get_active_role(),
            student_id=data["student_id"],
            event_id=data["event_id"],
            group_id=data.get("group_id"),
            request=request,
        )
        return Response(RegistrationSerializer(registration).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None, *args, **kwargs):
        details = workflow.delete_registration(request.user, self.get_active_role(), _pk(pk), request=request)
        return Response(details)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        registration = workflow.approve_registration(request.user, self.get_active_role(), _pk(pk), request=request)
        return Response(RegistrationSerializer(registration).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        registration = workflow.reject_registration(request.user, self.get_active_role(), _pk(pk), request=request)
        return Response(RegistrationSerializer(registration).data)


class EventViewSet(FestivalAPIMixin, viewsets.ModelViewSet):
    serializer_class = EventSerializer

    def get_queryset(self):
        scope = scope_events(self.get_active_role(), self.request.user)
        queryset = scope.apply(models.Event.objects.all())
        if self.request.query_params.get("category"):
            queryset = queryset.filter(category=self.request.query_params["category"])
        return queryset

    def perform_create(self, serializer):
        serializer.instance = catalog.create_event(
            self.request.user, self.get_active_role(), serializer.validated_data, request=self.request
        )

    def perform_update(self, serializer):
        serializer.instance = catalog.update_event(
            self.request.user, self.get_active_role(), serializer.instance, serializer.validated_data, request=self.request
        )

    def perform_destroy(self, instance):
        catalog.delete_event(self.request.user, self.get_active_role(), instance, request=self.request)


class StudentViewSet(FestivalAPIMixin, viewsets.ModelViewSet):
    serializer_class = StudentSerializer

    def get_queryset(self):
        scope = scope_students(self.get_active_role(), self.request.user)
        scope.raise_if_unresolved()
        queryset = scope.apply(models.Student.objects.all())
        if self.request.query_params.get("year"):
            queryset = queryset.filter(year=self.request.query_params["year"])
        return queryset

    def perform_create(self, serializer):
        serializer.instance = catalog.create_student(
            self.request.user, self.get_active_role(), serializer.validated_data, request=self.request
        )

    def perform_update(self, serializer):
        serializer.instance = catalog.update_student(
            self.request.user, self.get_active_role(), serializer.instance, serializer.validated_data, request=self.request
        )

    def perform_destroy(self, instance):
        catalog.delete_student(self.request.user, self.get_active_role(), instance, request=self.request)


class EligibilityView(FestivalAPIMixin, APIView):
    def get(self, request):
        query = EligibilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        student_id = query.validated_data["student"]

        role = ensure_role_held(self.get_active_role(), request.user)
        scope = scope_students(role, request.user)
        scope.raise_if_unresolved()
        if not scope.apply(models.Student.objects.filter(pk=student_id)).exists():
            raise exceptions.NotFound("Student not found.", student_id=student_id)

        result = eligibility.can_register(student_id, query.validated_data["category"])
        return Response(result.as_dict())


class AnalyticsView(FestivalAPIMixin, APIView):
    def get(self, request):
        role = ensure_role_held(self.get_active_role(), request.user)
        if role.is_student:
            raise exceptions.Unauthorized("Students cannot view festival analytics.", role=role.role)
        return Response(analytics.analytics_for(role, request.user).as_dict())


class StandingsView(FestivalAPIMixin, APIView):
    def get(self, request):
        config = settings_store.load_settings()
        if not standings.standings_visible_to(self.get_active_role(), config):
            return Response({"visible": False, "standings": []})
        rows = standings.current_standings()
        return Response({"visible": True, "standings": [row.as_dict() for row in rows]})


class ActivityLogView(FestivalAPIMixin, APIView):
    def get(self, request):
        predicate = activity.scope_activity_logs(self.get_active_role(), request.user)
        entries = models.ActivityLogEntry.objects.select_related("user").filter(predicate)
        if request.query_params.get("action"):
            entries = entries.filter(action=request.query_params["action"])
        return Response(ActivityLogEntrySerializer(entries[:200], many=True).data)


class SettingsView(FestivalAPIMixin, APIView):
    def get(self, request):
        config = settings_store.load_settings()
        return Response(
            {
                settings_store.MAX_ON_STAGE: config.max_on_stage_registrations,
                settings_store.MAX_OFF_STAGE: config.max_off_stage_registrations,
                settings_store.GLOBAL_REGISTRATION_OPEN: config.global_registration_open,
                settings_store.AUTO_APPROVE: config.auto_approve_registrations,
                settings_store.SCOREBOARD_VISIBLE: config.scoreboard_visible,
                "available": config.available,
            }
        )

    def post(self, request):
        serializer = SettingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        role = ensure_role_held(self.get_active_role(), request.user)
        setting = settings_store.update_setting(
            request.user,
            role,
            serializer.validated_data["key"],
            serializer.validated_data["value"],
        )
        return Response({"key": setting.key, "value": setting.value})


class ResultsView(FestivalAPIMixin, APIView):
    def post(self, request):
        serializer = EventResultInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = results.record_result(
            request.user,
            self.get_active_role(),
            data["registration_id"],
            participated=data["participated"],
            position=data["position"],
            request=request,
        )
        return Response(EventResultSerializer(result).data, status=status.HTTP_201_CREATED)


class ActiveRoleView(FestivalAPIMixin, APIView):
    def get(self, request):
        role = self.get_active_role()
        return Response(
            {
                "active_role": role.role if role else None,
                "label": role_label(role.role) if role else None,
                "roles": normalise_roles(getattr(request.user, "roles", None)),
            }
        )

    def post(self, request):
        serializer = ActiveRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        wanted = serializer.validated_data["role"].strip().lower()
        if wanted not in normalise_roles(getattr(request.user, "roles", None)):
            raise exceptions.Unauthorized("That role is not granted to this account.", role=wanted)
        request.session[settings.FESTIVAL_ACTIVE_ROLE_SESSION_KEY] = wanted
        logger.info("user %s switched active role to %s", request.user.pk, wanted)
        return Response({"active_role": wanted, "label": role_label(wanted)})
