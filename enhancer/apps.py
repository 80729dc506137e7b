from django.apps import AppConfig


class EnhancerConfig(AppConfig):
    name = "enhancer"
    verbose_name = "Video enhancement"

    def ready(self):
        from . import services  # noqa: F401  (connects the setting_changed receiver)
