"""
Vote Submission Gateway
=======================

The single entry point for casting a ballot. Orchestrates, in order:
1. Actor check (voter role, voting as themself)
2. BallotStore.insert_if_absent -- the only step that can fail the vote
3. TallyEngine.on_ballot_accepted, inside the ballot's transaction on its
   own savepoint -- best effort
4. Broadcaster.publish after commit -- best effort

The ballot and its increment commit together, so a reconciliation running
alongside sees both or neither. A failed increment only rolls back its
savepoint: the voter still gets a receipt and reconcile() repairs the count.

The broadcaster's per-election lock is taken at the increment and held
through commit and publish, so events go out in commit order.
"""

from contextlib import ExitStack
from dataclasses import dataclass
import datetime
import logging

from django.db import transaction # pyright: ignore[reportMissingModuleSource]
from django.utils import timezone # pyright: ignore[reportMissingModuleSource]

from .exceptions import BroadcastFailure, NotAuthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoteReceipt:
    ballot_id: str
    election_id: str
    cast_at: datetime.datetime

    def as_dict(self):
        return {
            'ballotId': self.ballot_id,
            'electionId': self.election_id,
            'castAt': self.cast_at.isoformat(),
        }


class VoteGateway:
    """
    Args:
        ballot_store: BallotStore
        tally: TallyEngine
        broadcaster: Broadcaster
        clock: Callable returning the acceptance timestamp (aware datetime)
    """

    def __init__(self, ballot_store, tally, broadcaster, clock=timezone.now):
        self.ballot_store = ballot_store
        self.tally = tally
        self.broadcaster = broadcaster
        self.clock = clock

    def submit(self, actor, voter_id, candidate_id, election_id) -> VoteReceipt:
        """
        Cast one ballot.

        Raises:
            NotAuthorized, ElectionNotActive, InvalidCandidate, AlreadyVoted,
            StorageUnavailable -- the ballot was not stored
        """
        voter_id = str(voter_id)
        if actor is None or not actor.is_voter or actor.id != voter_id:
            logger.warning(f"Ballot refused: actor {getattr(actor, 'id', None)} "
                           f"({getattr(actor, 'role', None)}) for voter {voter_id}")
            raise NotAuthorized()

        counted = {}

        with ExitStack() as ordering:

            def count_ballot(ballot):
                ordering.enter_context(self.broadcaster.ordered(ballot.election_id))
                counted['update'] = self._count(ballot)

            ballot = self.ballot_store.insert_if_absent(
                voter_id=voter_id,
                election_id=election_id,
                candidate_id=candidate_id,
                timestamp=self.clock(),
                on_stored=count_ballot,
            )

            self._publish(ballot, counted.get('update'))

        return VoteReceipt(
            ballot_id=str(ballot.id),
            election_id=str(ballot.election_id),
            cast_at=ballot.cast_at,
        )

    def _count(self, ballot):
        """Increment the tally on a savepoint. Returns the TallyUpdate, or None on failure."""
        try:
            with transaction.atomic():
                return self.tally.on_ballot_accepted(ballot.election_id, ballot.candidate_id)
        except Exception as e:
            logger.error(f"Tally update failed for ballot {ballot.id} "
                         f"(election {ballot.election_id}); reconciliation will repair it: {str(e)}")
            return None

    def _publish(self, ballot, update):
        """Announce a committed ballot. Never raises."""
        if update is None:
            return

        try:
            self.broadcaster.publish(
                update.election_id,
                update.candidate_id,
                update.vote_count,
                update.total_votes,
            )
        except Exception as e:
            failure = BroadcastFailure(str(e))
            logger.warning(f"{failure.kind} for ballot {ballot.id} "
                           f"(election {update.election_id}): {failure.message}")

    def has_voted(self, voter_id, election_id):
        return self.ballot_store.has_voted(voter_id, election_id)
