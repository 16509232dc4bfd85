"""URL configuration for the festival API."""

from django.urls import path
from rest_framework.routers import DefaultRouter

from . import api

router = DefaultRouter()
router.register(r"registrations", api.RegistrationViewSet, basename="registration")
router.register(r"events", api.EventViewSet, basename="event")
router.register(r"students", api.StudentViewSet, basename="student")

urlpatterns = [
    path("eligibility/", api.EligibilityView.as_view(), name="eligibility"),
    path("analytics/", api.AnalyticsView.as_view(), name="analytics"),
    path("standings/", api.StandingsView.as_view(), name="standings"),
    path("activity/", api.ActivityLogView.as_view(), name="activity"),
    path("settings/", api.SettingsView.as_view(), name="settings"),
    path("results/", api.ResultsView.as_view(), name="results"),
    path("active-role/", api.ActiveRoleView.as_view(), name="active-role"),
] + router.urls
