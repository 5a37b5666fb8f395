"""
ASGI config for vivi_project project.

It exposes the ASGI callable as a module-level variable named `application`.
HTTP goes to Django, WebSockets to the live calculator consumer.
"""

import os
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'vivi_project.settings')

# Initialize the Django ASGI application before importing consumers (they touch models)
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.auth import AuthMiddlewareStack  # noqa: E402
import calculator.routing  # noqa: E402

# Define the ASGI application with routing for HTTP and WebSockets
application = ProtocolTypeRouter({
    'http': django_asgi_app,
    'websocket': AuthMiddlewareStack(
        URLRouter(
            calculator.routing.websocket_urlpatterns
        )
    ),
})
