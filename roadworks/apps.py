from django.apps import AppConfig


class RoadworksConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "roadworks"
    verbose_name = "Road assignments"
