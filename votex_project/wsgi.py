"""
WSGI config for VoteX
=====================

Exposes the WSGI callable as a module-level variable named ``application``.

Results streams hold a worker thread per open connection; size the thread
pool of the WSGI server (e.g. gunicorn --threads) accordingly.
"""

import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'votex_project.settings')

application = get_wsgi_application()
