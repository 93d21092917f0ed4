"""
Current actor
=============

The identity the vote engine works with: an id plus one of the roles
``voter``, ``candidate`` or ``admin``. Authentication itself belongs to
Django's auth stack; this module only maps a user to an Actor.
"""

from dataclasses import dataclass
from typing import Optional

ROLE_VOTER = 'voter'
ROLE_CANDIDATE = 'candidate'
ROLE_ADMIN = 'admin'


@dataclass(frozen=True)
class Actor:
    id: str
    role: str

    @property
    def is_voter(self):
        return self.role == ROLE_VOTER

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN


def actor_for_user(user) -> Optional[Actor]:
    """
    Build the Actor for a Django user.

    Superusers and members of the "admin" group are admins, members of the
    "candidate" group are candidates, any other authenticated user votes.
    Anonymous users have no actor.
    """
    if user is None or not user.is_authenticated:
        return None

    if user.is_superuser:
        return Actor(id=str(user.pk), role=ROLE_ADMIN)

    groups = set(user.groups.values_list('name', flat=True))
    if ROLE_ADMIN in groups:
        role = ROLE_ADMIN
    elif ROLE_CANDIDATE in groups:
        role = ROLE_CANDIDATE
    else:
        role = ROLE_VOTER
    return Actor(id=str(user.pk), role=role)
