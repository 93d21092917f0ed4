"""
Tally Engine
============

Maintains per-candidate vote counts as TallyEntry rows and serves ranked
results from them.

The cache is only ever a projection of the Ballot Store: reconcile()
replaces it with a full recount, and is the repair path after an increment
failed on its savepoint while the ballot itself committed.
"""

from dataclasses import dataclass
from typing import List, Optional
import logging

from django.core.exceptions import ValidationError # pyright: ignore[reportMissingModuleSource]
from django.db import transaction # pyright: ignore[reportMissingModuleSource]
from django.db.models import F, Sum # pyright: ignore[reportMissingModuleSource]

from .models import Candidate, Election, TallyEntry
from .utils import leading_candidate, rank_by_votes, vote_percentage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateResult:
    candidate_id: str
    name: str
    party: str
    vote_count: int
    percentage: float

    def as_dict(self):
        return {
            'candidateId': self.candidate_id,
            'name': self.name,
            'party': self.party,
            'voteCount': self.vote_count,
            'percentage': self.percentage,
        }


@dataclass(frozen=True)
class TallyUpdate:
    """State of an election's tally right after one accepted ballot."""

    election_id: str
    candidate_id: str
    vote_count: int
    total_votes: int


class TallyEngine:
    """
    Cached tally per election.

    Args:
        ballot_store: BallotStore used as ground truth for reconciliation
    """

    def __init__(self, ballot_store):
        self.ballot_store = ballot_store

    def on_ballot_accepted(self, election_id, candidate_id) -> TallyUpdate:
        """
        Count one newly stored ballot.

        Meant to run inside the ballot's own transaction, so the ballot and
        its increment become visible together.

        The increment is a single UPDATE ... SET vote_count = vote_count + 1,
        so concurrent increments never lose updates. A candidate without a
        cache row gets one starting at zero; ballots stored before the row
        existed are picked up by reconcile(), never by the increment path.
        """
        with transaction.atomic():
            entries = TallyEntry.objects.filter(
                election_id=election_id,
                candidate_id=candidate_id,
            )
            if not entries.update(vote_count=F('vote_count') + 1):
                logger.debug(f"No tally row for candidate {candidate_id} in election {election_id}; creating it")
                TallyEntry.objects.get_or_create(
                    election_id=election_id,
                    candidate_id=candidate_id,
                    defaults={'vote_count': 0},
                )
                entries.update(vote_count=F('vote_count') + 1)

            vote_count = TallyEntry.objects.filter(
                election_id=election_id,
                candidate_id=candidate_id,
            ).values_list('vote_count', flat=True).get()
            total_votes = self.total_votes(election_id)

        return TallyUpdate(
            election_id=str(election_id),
            candidate_id=str(candidate_id),
            vote_count=vote_count,
            total_votes=total_votes,
        )

    def get_results(self, election_id) -> List[CandidateResult]:
        """
        Ranked results for one election.

        Sorted by vote count descending; equal counts keep registration order,
        so repeated calls with no new ballots return the same sequence.
        """
        try:
            candidates = list(
                Candidate.objects.filter(election_id=election_id)
                .order_by('roster_position')
                .values('id', 'name', 'party')
            )
            counts = {
                str(candidate_id): vote_count
                for candidate_id, vote_count in TallyEntry.objects.filter(
                    election_id=election_id
                ).values_list('candidate_id', 'vote_count')
            }
        except ValidationError:
            return []

        total_votes = sum(counts.values())

        rows = [
            {
                'candidate_id': str(candidate['id']),
                'name': candidate['name'],
                'party': candidate['party'],
                'vote_count': counts.get(str(candidate['id']), 0),
            }
            for candidate in candidates
        ]

        return [
            CandidateResult(
                candidate_id=row['candidate_id'],
                name=row['name'],
                party=row['party'],
                vote_count=row['vote_count'],
                percentage=vote_percentage(row['vote_count'], total_votes),
            )
            for row in rank_by_votes(rows)
        ]

    def total_votes(self, election_id) -> int:
        total = TallyEntry.objects.filter(election_id=election_id).aggregate(
            total=Sum('vote_count')
        )['total']
        return total or 0

    def winner(self, election_id) -> Optional[CandidateResult]:
        """Sole leader, or None when there are no votes or the lead is tied."""
        return leading_candidate(self.get_results(election_id), count=lambda r: r.vote_count)

    @transaction.atomic
    def reconcile(self, election_id) -> bool:
        """
        Replace the cached tally with a recount from the Ballot Store.

        Returns:
            True if the cache disagreed with the ballots and was rewritten
        """
        # Lock the cache rows before counting. A ballot transaction that already
        # incremented is waited for and then seen in both reads; one that has
        # not yet incremented is in neither, and adds on top of the recount.
        cached = {
            str(candidate_id): vote_count
            for candidate_id, vote_count in TallyEntry.objects.select_for_update().filter(
                election_id=election_id
            ).values_list('candidate_id', 'vote_count')
        }
        recount = self.ballot_store.counts_for(election_id)

        # A missing row reads as zero everywhere, so it only drifts once votes exist
        drift = {
            candidate_id: (cached.get(candidate_id), vote_count)
            for candidate_id, vote_count in recount.items()
            if cached.get(candidate_id, 0) != vote_count
        }
        stale = set(cached) - set(recount)

        if not drift and not stale:
            return False

        for candidate_id, (_, vote_count) in drift.items():
            TallyEntry.objects.update_or_create(
                election_id=election_id,
                candidate_id=candidate_id,
                defaults={'vote_count': vote_count},
            )

        if stale:
            TallyEntry.objects.filter(
                election_id=election_id,
                candidate_id__in=stale,
            ).delete()

        if not cached:
            logger.info(f"Tally seeded for election {election_id} | total {recount.total()}")
            return True

        logger.warning(f"Tally reconciled for election {election_id}: "
                       f"{len(drift)} entries corrected {drift} | total {recount.total()}")
        return True

    def reconcile_all(self) -> int:
        """Reconcile every election; returns how many needed a repair."""
        repaired = 0
        for election_id in Election.objects.values_list('id', flat=True):
            if self.reconcile(election_id):
                repaired += 1
        logger.info(f"Reconciled all elections: {repaired} repaired")
        return repaired
