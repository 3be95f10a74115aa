from django.apps import AppConfig


class EntitlementsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "entitlements"
    verbose_name = "Entitlements"

    def ready(self) -> None:
        from entitlements.container import build_engine

        self.engine = build_engine()
