"""
ASGI config for tasktracker project.

The task views are async; serving them under ASGI keeps background cache
refreshes running on the server's event loop after a response is sent.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tasktracker.settings")

application = get_asgi_application()
