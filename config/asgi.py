"""
ASGI config for the portfolio project.

It exposes the ASGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/dev/howto/deployment/asgi/

"""

import os

from django.core.asgi import get_asgi_application

# If DJANGO_SETTINGS_MODULE is unset, select a sensible default based on BUILD_ENV
# Default to local settings for the local dev image, production otherwise.
if "DJANGO_SETTINGS_MODULE" not in os.environ:
    build_env = os.environ.get("BUILD_ENV", "production").lower()
    default_settings = (
        "config.settings.local"
        if build_env == "local"
        else "config.settings.production"
    )
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", default_settings)

django_application = get_asgi_application()

from portfolio.realtime.gateway import get_gateway  # noqa: E402

# Socket.IO must sit above Django because it uses BOTH:
# - HTTP long-polling (Engine.IO)
# - WebSocket upgrades
# The gateway also owns the lifespan hooks that start/stop the snapshot loop.
application = get_gateway().asgi_app(other_asgi_app=django_application)
