"""
URL routing for the elections app
=================================

Maps the JSON API to view functions:
- Casting ballots
- Results (snapshot and live stream)
- Voting status
- Election and candidate listing

Mounted under /api/ by the project router.
"""

from django.urls import path
from . import views

app_name = 'elections'

urlpatterns = [
    # Election listing
    path('elections/', views.election_list, name='election_list'),

    # Roster of one election (?electionId=)
    path('candidates/', views.candidate_list, name='candidate_list'),

    # Ballot submission
    path('votes/', views.submit_vote, name='submit_vote'),

    # Voting status for one voter in one election
    path('has-voted/', views.has_voted, name='has_voted'),

    # Ranked results (JSON)
    path('results/<uuid:election_id>/', views.election_results, name='results'),

    # Live tally updates (server-sent events)
    path('results/<uuid:election_id>/stream/', views.results_stream, name='results_stream'),
]
