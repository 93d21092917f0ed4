"""
Django Admin Configuration for VoteX
====================================

Configures Django admin interface for:
- Election management (with tally reconciliation action)
- Candidate management (roster frozen once an election opens)
- Ballot viewing (read-only, audit trail)
- Tally cache viewing (read-only)

Security:
- Ballots cannot be added, changed or deleted from the admin
- Requires Django admin authentication
"""

from django import forms # pyright: ignore[reportMissingModuleSource]
from django.contrib import admin, messages # pyright: ignore[reportMissingModuleSource, reportMissingImports]

from .apps import get_engine
from .exceptions import RosterLockedError
from .models import Election, Candidate, Ballot, TallyEntry


class CandidateInline(admin.TabularInline):
    """Roster editing inside the election page; read-only once voting opened."""

    model = Candidate
    fields = ('roster_position', 'name', 'party')
    readonly_fields = ('roster_position',)
    extra = 0

    def _locked(self, obj):
        return obj is not None and obj.roster_locked

    def has_add_permission(self, request, obj=None):
        return not self._locked(obj) and super().has_add_permission(request, obj)

    def has_change_permission(self, request, obj=None):
        return not self._locked(obj) and super().has_change_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        return not self._locked(obj) and super().has_delete_permission(request, obj)


@admin.register(Election)
class ElectionAdmin(admin.ModelAdmin):
    """
    Admin interface for Election model.

    Displays:
    - Title, status and voting window
    - Candidate and ballot counts
    - Action to rebuild the tally cache from ballots
    """

    list_display = ('title', 'status', 'start_at', 'end_at',
                    'get_candidates_count', 'get_vote_count', 'live_results')
    list_filter = ('status', 'live_results', 'start_at')
    search_fields = ('title', 'description')
    readonly_fields = ('id', 'created_at', 'updated_at', 'get_vote_count',
                       'get_candidates_count')
    fieldsets = (
        ('Election Information', {
            'fields': ('id', 'title', 'description', 'status', 'live_results')
        }),
        ('Voting Window', {
            'fields': ('start_at', 'end_at'),
            'description': 'Ballots are accepted from start (inclusive) to end (exclusive)'
        }),
        ('Statistics', {
            'fields': ('get_vote_count', 'get_candidates_count',
                       'created_at', 'updated_at'),
        }),
    )
    inlines = [CandidateInline]
    actions = ['reconcile_tallies']

    def get_candidates_count(self, obj):
        """Display number of candidates for this election."""
        return obj.candidates.count()
    get_candidates_count.short_description = 'Candidates'

    def get_vote_count(self, obj):
        """Display number of ballots cast (authoritative count)."""
        return obj.ballots.count()
    get_vote_count.short_description = 'Ballots'

    def has_delete_permission(self, request, obj=None):
        """Elections with ballots are kept for the audit trail."""
        if obj is not None and obj.ballots.exists():
            return False
        return super().has_delete_permission(request, obj)

    @admin.action(description='Reconcile tallies with ballots')
    def reconcile_tallies(self, request, queryset):
        tally = get_engine().tally
        repaired = [election.title for election in queryset if tally.reconcile(election.id)]
        if repaired:
            self.message_user(request, f"Tally rebuilt for: {', '.join(repaired)}", messages.WARNING)
        else:
            self.message_user(request, 'All selected tallies already match the ballots.', messages.SUCCESS)


class CandidateAdminForm(forms.ModelForm):
    class Meta:
        model = Candidate
        fields = ('election', 'name', 'party', 'platform', 'bio')

    def clean(self):
        cleaned_data = super().clean()
        election = cleaned_data.get('election')
        if election is not None and election.roster_locked:
            raise RosterLockedError()
        if self.instance.pk and self.instance.election.roster_locked:
            raise RosterLockedError()
        return cleaned_data


@admin.register(Candidate)
class CandidateAdmin(admin.ModelAdmin):
    """
    Admin interface for Candidate model.

    Candidates of active or completed elections are read-only.
    """

    form = CandidateAdminForm
    list_display = ('name', 'party', 'election', 'roster_position', 'created_at')
    list_filter = ('election', 'created_at')
    search_fields = ('name', 'party', 'election__title')
    readonly_fields = ('id', 'roster_position', 'created_at')
    fieldsets = (
        ('Candidate Information', {
            'fields': ('id', 'election', 'name', 'party', 'platform', 'bio')
        }),
        ('Metadata', {
            'fields': ('roster_position', 'created_at'),
        }),
    )

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.election.roster_locked:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(Ballot)
class BallotAdmin(admin.ModelAdmin):
    """
    Admin interface for Ballot model.

    IMPORTANT: Ballots are READ-ONLY in admin
    - Protects voting integrity
    - Maintains audit trail
    """

    list_display = ('id', 'election', 'candidate', 'voter_id', 'cast_at')
    list_filter = ('election', 'cast_at')
    search_fields = ('voter_id', 'election__title')
    readonly_fields = ('id', 'voter_id', 'election', 'candidate', 'cast_at')

    def has_add_permission(self, request):
        """Ballots only come from the vote gateway."""
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        """Prevent ballot deletion in admin (audit trail)."""
        return False


@admin.register(TallyEntry)
class TallyEntryAdmin(admin.ModelAdmin):
    """Cached counts; fix drift with the election reconcile action."""

    list_display = ('candidate', 'election', 'vote_count', 'updated_at')
    list_filter = ('election',)
    readonly_fields = ('election', 'candidate', 'vote_count', 'updated_at')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
