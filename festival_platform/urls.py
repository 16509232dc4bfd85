"""
URL configuration for festival_platform project.

The engine is exposed over a REST API under ``/api/festival/``; the Django
admin covers record maintenance.
"""
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/festival/', include('festival.urls')),
]
