"""
Main URL Router for VoteX
=========================

Routes incoming HTTP requests to the admin site and the elections API.

Security: state-changing endpoints are protected with CSRF tokens and
authenticated sessions.
"""

from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # Django admin panel (elections, candidates, read-only ballots)
    path('admin/', admin.site.urls),

    # Ballot submission, results, live stream
    path('api/', include('elections.urls')),
]
