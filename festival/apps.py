from django.apps import AppConfig


class FestivalConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "festival"
    verbose_name = "Festival"
