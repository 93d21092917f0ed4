"""
Ballot Store
============

Durable, uniqueness-enforcing storage of ballots.

Two layers keep "one ballot per voter per election" true under concurrent
submissions:
- KeyedLock serializes attempts for the same (voter_id, election_id) inside
  this process, without blocking any other key
- The ballot_one_per_voter_per_election unique constraint decides between
  processes; losing the race surfaces as IntegrityError -> AlreadyVoted
"""

from collections import Counter
from contextlib import contextmanager
import logging
import threading

from django.core.exceptions import ValidationError # pyright: ignore[reportMissingModuleSource]
from django.db import DatabaseError, IntegrityError, transaction # pyright: ignore[reportMissingModuleSource]
from django.db.models import Count # pyright: ignore[reportMissingModuleSource]

from .exceptions import (
    AlreadyVoted, ElectionNotActive, InvalidCandidate, StorageUnavailable,
)
from .models import Ballot, Candidate, Election

logger = logging.getLogger(__name__)


class KeyedLock:
    """
    Mutual exclusion per key.

    Locks are created on first use and dropped when the last holder leaves,
    so the table only holds keys that are currently contended.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}  # key -> [lock, holders]

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self):
        with self._guard:
            return len(self._locks)


class BallotStore:
    """Owns Ballot rows. The only writer of the ballots table."""

    def __init__(self, key_lock=None):
        self._key_lock = key_lock or KeyedLock()

    def insert_if_absent(self, voter_id, election_id, candidate_id, timestamp, on_stored=None):
        """
        Store a ballot unless the voter already has one in this election.

        Args:
            voter_id: Authenticated voter identity
            election_id: UUID of the election
            candidate_id: UUID of the chosen candidate
            timestamp: Acceptance time, checked against [start_at, end_at)
            on_stored: Optional callable(ballot) run inside the same
                transaction right after the insert, so whatever it writes
                commits (or rolls back) together with the ballot

        Returns:
            The new Ballot

        Raises:
            ElectionNotActive: election missing, not active, or timestamp
                outside its window
            InvalidCandidate: candidate does not stand in this election
            AlreadyVoted: a ballot exists for (voter_id, election_id)
            StorageUnavailable: the database failed
        """
        voter_id = str(voter_id)
        key = (voter_id, str(election_id))

        with self._key_lock.hold(key):
            try:
                with transaction.atomic():
                    election = self._load_election(election_id)

                    if not election.accepts_ballots_at(timestamp):
                        logger.info(f"Ballot rejected (window): voter {voter_id} | "
                                    f"election {election.id} | status {election.status} | "
                                    f"at {timestamp.isoformat()}")
                        raise ElectionNotActive()

                    # Rosters are external state; re-validate inside the transaction
                    if not self._candidate_in_election(candidate_id, election.id):
                        logger.warning(f"Ballot rejected (candidate): voter {voter_id} | "
                                       f"election {election.id} | candidate {candidate_id}")
                        raise InvalidCandidate()

                    if Ballot.objects.filter(voter_id=voter_id, election_id=election.id).exists():
                        raise AlreadyVoted()

                    ballot = Ballot.objects.create(
                        voter_id=voter_id,
                        election_id=election.id,
                        candidate_id=candidate_id,
                        cast_at=timestamp,
                    )

                    if on_stored is not None:
                        on_stored(ballot)

            except AlreadyVoted:
                logger.info(f"Duplicate ballot blocked: voter {voter_id} | election {election_id}")
                raise

            except IntegrityError as e:
                # Another process committed first for the same key
                logger.warning(f"Duplicate ballot blocked by constraint: voter {voter_id} | "
                               f"election {election_id} | {str(e)}")
                raise AlreadyVoted() from e

            except DatabaseError as e:
                logger.error(f"Ballot store unavailable: voter {voter_id} | "
                             f"election {election_id} | {str(e)}")
                raise StorageUnavailable() from e

        logger.info(f"Ballot recorded: {ballot.id} | election {ballot.election_id}")
        return ballot

    def has_voted(self, voter_id, election_id):
        """True only for committed ballots."""
        try:
            return Ballot.objects.filter(
                voter_id=str(voter_id),
                election_id=election_id,
            ).exists()
        except ValidationError:
            return False
        except DatabaseError as e:
            logger.error(f"has_voted failed for election {election_id}: {str(e)}")
            raise StorageUnavailable() from e

    def counts_for(self, election_id):
        """
        Full recount from stored ballots.

        Returns:
            Counter {candidate_id (str): vote_count} with every roster
            candidate present; ``.total()`` is the number of ballots.
        """
        try:
            counts = Counter({
                str(candidate_id): 0
                for candidate_id in Candidate.objects.filter(
                    election_id=election_id
                ).values_list('id', flat=True)
            })
            rows = (
                Ballot.objects.filter(election_id=election_id)
                .values('candidate_id')
                .annotate(n=Count('id'))
            )
            for row in rows:
                counts[str(row['candidate_id'])] = row['n']
        except DatabaseError as e:
            logger.error(f"Recount failed for election {election_id}: {str(e)}")
            raise StorageUnavailable() from e
        return counts

    @staticmethod
    def _load_election(election_id):
        try:
            return Election.objects.get(pk=election_id)
        except (Election.DoesNotExist, ValidationError, ValueError):
            raise ElectionNotActive()

    @staticmethod
    def _candidate_in_election(candidate_id, election_id):
        try:
            return Candidate.objects.filter(pk=candidate_id, election_id=election_id).exists()
        except (ValidationError, ValueError):
            return False
