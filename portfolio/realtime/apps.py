from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class RealtimeConfig(AppConfig):
    name = "portfolio.realtime"
    label = "realtime"
    verbose_name = _("Realtime")

    gateway = None

    def ready(self):
        from portfolio.realtime.gateway import build_gateway  # noqa: PLC0415

        self.gateway = build_gateway()
