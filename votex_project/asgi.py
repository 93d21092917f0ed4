"""
ASGI config for VoteX
=====================

Exposes the ASGI callable as a module-level variable named ``application``.
Can be deployed with Uvicorn, Daphne or Hypercorn.
"""

import os
from django.core.asgi import get_asgi_application # pyright: ignore[reportMissingModuleSource]

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'votex_project.settings')

application = get_asgi_application()
