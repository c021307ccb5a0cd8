from django.apps import AppConfig


class TimeSessionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "time_sessions"
    verbose_name = "Time Sessions"
