"""
Database models for VoteX
=========================

Defines the data structure for:
- Election: a time-boxed election with a candidate roster
- Candidate: a candidate standing in one election
- Ballot: one voter's immutable choice in one election
- TallyEntry: cached vote count per (election, candidate)

Integrity:
- One Ballot per (voter_id, election), enforced by a database constraint
- Ballots are never updated or deleted by the application
- TallyEntry is derived data; ballots are the source of truth
- The candidate roster is frozen once an election opens
"""

from django.db import models # pyright: ignore[reportMissingModuleSource]
from django.db.models import Max, Q, F # pyright: ignore[reportMissingModuleSource]
from django.core.exceptions import ValidationError # pyright: ignore[reportMissingModuleSource]
from django.core.validators import MinValueValidator, MaxLengthValidator # pyright: ignore[reportMissingModuleSource]
import uuid

from .exceptions import RosterLockedError


class Election(models.Model):
    """
    Represents a single election.

    Attributes:
        id: UUID primary key for shareable unique identifier
        title: Election title
        description: Optional description
        start_at: First instant ballots are accepted
        end_at: First instant ballots are no longer accepted
        status: upcoming / active / completed, set by the scheduler
        live_results: Whether results are visible while voting is open
    """

    STATUS_UPCOMING = 'upcoming'
    STATUS_ACTIVE = 'active'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_UPCOMING, 'Upcoming'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
    ]
    ROSTER_LOCKED_STATUSES = (STATUS_ACTIVE, STATUS_COMPLETED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(
        max_length=200,
        validators=[MaxLengthValidator(200)],
        help_text="Election title"
    )
    description = models.TextField(
        blank=True,
        default='',
        max_length=1000,
        help_text="Optional details about the election"
    )
    start_at = models.DateTimeField(help_text="Voting opens at this instant")
    end_at = models.DateTimeField(help_text="Voting closes at this instant (exclusive)")
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_UPCOMING,
        help_text="Lifecycle state, managed by the election scheduler"
    )
    live_results = models.BooleanField(
        default=True,
        help_text="Whether results are published while the election is active"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_at']
        indexes = [
            models.Index(fields=['status'], name='election_status_idx'),
            models.Index(fields=['-start_at'], name='election_start_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_at__gt=F('start_at')),
                name='election_window_not_empty',
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.id})"

    def clean(self):
        if self.start_at and self.end_at and self.end_at <= self.start_at:
            raise ValidationError({'end_at': 'End must be after start.'})

    def accepts_ballots_at(self, timestamp):
        """Active status and timestamp inside [start_at, end_at)."""
        return (
            self.status == self.STATUS_ACTIVE
            and self.start_at <= timestamp < self.end_at
        )

    @property
    def roster_locked(self):
        return self.status in self.ROSTER_LOCKED_STATUSES


class Candidate(models.Model):
    """
    Represents a candidate standing in an election.

    Attributes:
        id: UUID primary key
        election: Foreign key to parent Election
        name: Display name
        party: Party or affiliation (optional)
        platform: Campaign platform text (optional)
        bio: Short biography (optional)
        roster_position: Registration order inside the election, used to
            break ties in results
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    election = models.ForeignKey(
        Election,
        on_delete=models.CASCADE,
        related_name='candidates',
        help_text="The election this candidate stands in"
    )
    name = models.CharField(
        max_length=100,
        validators=[MaxLengthValidator(100)],
        help_text="Candidate name"
    )
    party = models.CharField(max_length=100, blank=True, default='')
    platform = models.TextField(blank=True, default='', max_length=2000)
    bio = models.TextField(blank=True, default='', max_length=1000)
    roster_position = models.PositiveIntegerField(
        editable=False,
        help_text="Registration order within the election"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['election', 'roster_position']
        constraints = [
            models.UniqueConstraint(
                fields=['election', 'roster_position'],
                name='candidate_unique_roster_position',
            ),
            models.UniqueConstraint(
                fields=['election', 'name'],
                name='candidate_unique_name_per_election',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.election.title})"

    def _check_roster_open(self):
        status = (
            Election.objects.filter(pk=self.election_id)
            .values_list('status', flat=True)
            .first()
        )
        if status in Election.ROSTER_LOCKED_STATUSES:
            raise RosterLockedError()

    def save(self, *args, **kwargs):
        """Refuse roster changes on open elections; assign registration order."""
        self._check_roster_open()
        if self.roster_position is None:
            last = Candidate.objects.filter(election_id=self.election_id).aggregate(
                last=Max('roster_position')
            )['last']
            self.roster_position = 1 if last is None else last + 1
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        self._check_roster_open()
        return super().delete(*args, **kwargs)


class Ballot(models.Model):
    """
    One voter's choice in one election.

    Attributes:
        id: UUID primary key, returned to the voter as the receipt id
        voter_id: Identity asserted by the authentication layer
        election: Foreign key to Election
        candidate: Foreign key to the chosen Candidate
        cast_at: Acceptance timestamp, inside the election window

    Integrity:
        - (voter_id, election) is unique at the database level
        - Rows are immutable: no update, no delete
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    voter_id = models.CharField(
        max_length=64,
        help_text="Identity of the voter (from the authentication layer)"
    )
    election = models.ForeignKey(
        Election,
        on_delete=models.PROTECT,
        related_name='ballots',
    )
    candidate = models.ForeignKey(
        Candidate,
        on_delete=models.PROTECT,
        related_name='ballots',
    )
    cast_at = models.DateTimeField()

    class Meta:
        ordering = ['-cast_at']
        constraints = [
            models.UniqueConstraint(
                fields=['voter_id', 'election'],
                name='ballot_one_per_voter_per_election',
            ),
        ]
        indexes = [
            models.Index(fields=['election', 'candidate'], name='ballot_election_candidate_idx'),
            models.Index(fields=['-cast_at'], name='ballot_cast_at_idx'),
        ]

    def __str__(self):
        return f"Ballot {self.id} in {self.election_id} at {self.cast_at}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Ballots are immutable once accepted.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Ballots cannot be deleted.')


class TallyEntry(models.Model):
    """
    Cached vote count for one candidate.

    Derived from Ballot rows; rebuilt by reconciliation whenever it drifts.
    """

    election = models.ForeignKey(
        Election,
        on_delete=models.CASCADE,
        related_name='tally_entries',
    )
    candidate = models.ForeignKey(
        Candidate,
        on_delete=models.CASCADE,
        related_name='tally_entries',
    )
    vote_count = models.PositiveIntegerField(
        default=0,
        validators=[MinValueValidator(0)],
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'tally entries'
        constraints = [
            models.UniqueConstraint(
                fields=['election', 'candidate'],
                name='tally_entry_unique_candidate',
            ),
        ]

    def __str__(self):
        return f"{self.candidate.name}: {self.vote_count}"
