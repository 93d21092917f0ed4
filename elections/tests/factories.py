import datetime

from django.contrib.auth.models import Group, User
from django.utils import timezone

from elections.actors import Actor, ROLE_VOTER
from elections.models import Candidate, Election


def make_election(title="General", candidates=("Alice", "Bob"), status=Election.STATUS_ACTIVE,
                  start_at=None, end_at=None, live_results=True):
    """
    Create an election with its roster.

    Candidates are registered while the election is still upcoming, then the
    status is switched, the same way an administrator would do it.
    """
    now = timezone.now()
    election = Election.objects.create(
        title=title,
        start_at=start_at or now - datetime.timedelta(hours=1),
        end_at=end_at or now + datetime.timedelta(hours=1),
        status=Election.STATUS_UPCOMING,
        live_results=live_results,
    )
    roster = [Candidate.objects.create(election=election, name=name) for name in candidates]
    if status != Election.STATUS_UPCOMING:
        election.status = status
        election.save(update_fields=["status", "updated_at"])
    return election, roster


def voter(voter_id):
    return Actor(id=str(voter_id), role=ROLE_VOTER)


def make_user(username, group=None, superuser=False):
    if superuser:
        return User.objects.create_superuser(username=username, password="pw-not-used-123")
    user = User.objects.create_user(username=username, password="pw-not-used-123")
    if group:
        user.groups.add(Group.objects.get_or_create(name=group)[0])
    return user
