"""
Error kinds of the vote engine
==============================

Every failure a ballot submission can end in has its own class so callers
(and the JSON API) can tell "you already voted" apart from "something went
wrong". ``kind`` is the stable machine-readable name sent to clients.
"""

from django.core.exceptions import ValidationError # pyright: ignore[reportMissingModuleSource]
from django.utils.translation import gettext_lazy as _ # pyright: ignore[reportMissingModuleSource]


class VoteError(Exception):
    """Base class for every ballot submission failure."""

    kind = 'VoteError'
    default_message = _('Your vote could not be recorded.')
    retriable = False

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(str(self.message))


class AlreadyVoted(VoteError):
    kind = 'AlreadyVoted'
    default_message = _('You have already voted in this election.')


class InvalidCandidate(VoteError):
    kind = 'InvalidCandidate'
    default_message = _('This candidate is not standing in this election.')


class ElectionNotActive(VoteError):
    kind = 'ElectionNotActive'
    default_message = _('This election is not accepting ballots.')


class StorageUnavailable(VoteError):
    kind = 'StorageUnavailable'
    default_message = _('The ballot store is unavailable. Check whether your vote was recorded before trying again.')
    retriable = True


class BroadcastFailure(VoteError):
    """Raised inside the engine only; never reported to the voter."""

    kind = 'BroadcastFailure'
    default_message = _('Live result update failed.')


class NotAuthorized(VoteError):
    kind = 'NotAuthorized'
    default_message = _('Only voters can cast ballots, and only for themselves.')


class RosterLockedError(ValidationError):
    """Candidate roster changes after an election has opened."""

    def __init__(self, message=None):
        super().__init__(
            message or _('Candidates cannot be changed once the election is active or completed.'),
            code='roster_locked',
        )
