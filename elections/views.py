"""
View functions for VoteX
========================

JSON API over the vote engine:
- Casting a ballot
- Reading ranked results
- Asking whether a voter has voted
- Streaming live tally updates (server-sent events)
- Listing elections and their candidates

Security implemented:
- CSRF protection on POST (built-in Django)
- Authenticated actor required to vote; voters vote only as themselves
- Input validation via forms before anything touches the database
"""

from django.conf import settings # pyright: ignore[reportMissingModuleSource]
from django.db.models import Count # pyright: ignore[reportMissingModuleSource]
from django.http import JsonResponse, StreamingHttpResponse # pyright: ignore[reportMissingModuleSource]
from django.views.decorators.http import require_http_methods # pyright: ignore[reportMissingModuleSource]
from django.views.decorators.csrf import csrf_protect # pyright: ignore[reportMissingModuleSource]
import json
import logging
import queue
import time

from .apps import get_engine
from .exceptions import (
    AlreadyVoted, ElectionNotActive, InvalidCandidate, NotAuthorized,
    StorageUnavailable, VoteError,
)
from .forms import CandidateListForm, HasVotedForm, SubmitVoteForm
from .models import Election
from .utils import format_sse, leading_candidate, sse_comment

logger = logging.getLogger(__name__)

# HTTP status for each error kind the gateway can raise
ERROR_STATUS = {
    AlreadyVoted.kind: 409,
    InvalidCandidate.kind: 400,
    ElectionNotActive.kind: 403,
    NotAuthorized.kind: 403,
    StorageUnavailable.kind: 503,
}


def _error(status, message, kind=None, **extra):
    payload = {'success': False, 'message': str(message)}
    if kind:
        payload['errorKind'] = kind
    payload.update(extra)
    return JsonResponse(payload, status=status)


def _get_election(election_id):
    return Election.objects.filter(pk=election_id).first()


def _results_visible(election, actor):
    """Live results can be switched off per election; admins always see them."""
    if actor is not None and actor.is_admin:
        return True
    return election.live_results or election.status == Election.STATUS_COMPLETED


@require_http_methods(["POST"])
@csrf_protect
def submit_vote(request):
    """
    Cast a ballot.

    Body (JSON): {"voterId": ..., "candidateId": ..., "electionId": ...}

    Returns:
        201 {"success": true, "receipt": {...}}
        4xx/503 {"success": false, "errorKind": ..., "message": ...}
    """

    actor = getattr(request, 'actor', None)
    if actor is None:
        return _error(401, 'Authentication required.')

    try:
        payload = json.loads(request.body or b'{}')
    except (ValueError, UnicodeDecodeError):
        return _error(400, 'Request body must be JSON.')
    if not isinstance(payload, dict):
        return _error(400, 'Request body must be a JSON object.')

    form = SubmitVoteForm(payload)
    if not form.is_valid():
        return _error(400, 'Invalid ballot.', errors=form.errors.get_json_data())

    gateway = get_engine().gateway

    try:
        receipt = gateway.submit(
            actor,
            voter_id=form.cleaned_data['voterId'],
            candidate_id=form.cleaned_data['candidateId'],
            election_id=form.cleaned_data['electionId'],
        )

    except VoteError as e:
        status = ERROR_STATUS.get(e.kind, 400)
        logger.info(f"Ballot not recorded: {e.kind} | voter {form.cleaned_data['voterId']} | "
                    f"election {form.cleaned_data['electionId']}")
        return _error(status, e.message, kind=e.kind, retriable=e.retriable)

    except Exception as e:
        # The ballot may or may not be stored; the client must check has-voted
        logger.error(f"Error recording vote: {str(e)}")
        return _error(500, 'Error recording vote. Check whether your vote was recorded before trying again.')

    return JsonResponse({
        'success': True,
        'message': 'Vote recorded successfully',
        'receipt': receipt.as_dict(),
    }, status=201)


@require_http_methods(["GET"])
def election_results(request, election_id):
    """
    Ranked results for one election.

    Query params:
        reconcile=1: (admins) rebuild the cached tally from ballots first

    Returns:
        JSON with the election, total votes, sole leader (or null) and
        results ordered by votes, ties in registration order
    """

    election = _get_election(election_id)
    if election is None:
        return _error(404, 'Election not found.')

    actor = getattr(request, 'actor', None)
    if not _results_visible(election, actor):
        return _error(403, 'Results are published when the election ends.')

    engine = get_engine()

    if request.GET.get('reconcile') == '1':
        if actor is None or not actor.is_admin:
            return _error(403, 'Only admins can reconcile tallies.')
        try:
            repaired = engine.tally.reconcile(election.id)
        except StorageUnavailable as e:
            return _error(503, e.message, kind=e.kind)
        logger.info(f"Reconcile requested by {actor.id} for election {election.id}: repaired={repaired}")

    results = engine.tally.get_results(election.id)
    total_votes = sum(result.vote_count for result in results)
    winner = leading_candidate(results, count=lambda r: r.vote_count)

    return JsonResponse({
        'success': True,
        'election': {
            'id': str(election.id),
            'title': election.title,
            'status': election.status,
            'startAt': election.start_at.isoformat(),
            'endAt': election.end_at.isoformat(),
        },
        'totalVotes': total_votes,
        'winner': winner.as_dict() if winner else None,
        'results': [result.as_dict() for result in results],
    })


@require_http_methods(["GET"])
def has_voted(request):
    """
    Whether a voter already has a committed ballot in an election.

    Voters may only ask about themselves; admins may ask about anyone.
    """

    actor = getattr(request, 'actor', None)
    if actor is None:
        return _error(401, 'Authentication required.')

    form = HasVotedForm(request.GET)
    if not form.is_valid():
        return _error(400, 'voterId and electionId are required.', errors=form.errors.get_json_data())

    voter_id = form.cleaned_data['voterId']
    if actor.id != voter_id and not actor.is_admin:
        return _error(403, 'You can only check your own voting status.')

    try:
        voted = get_engine().gateway.has_voted(voter_id, form.cleaned_data['electionId'])
    except StorageUnavailable as e:
        return _error(503, e.message, kind=e.kind, retriable=True)

    return JsonResponse({'success': True, 'hasVoted': voted})


def _stream_tally_events(broadcaster, election_id, keepalive, max_seconds):
    """
    Yield SSE frames for one subscriber until max_seconds elapse.

    The broadcaster calls events.put from the voting thread; this generator
    drains the queue on the connection's own thread.
    """
    events = queue.Queue()
    subscription = broadcaster.subscribe(election_id, events.put)
    deadline = time.monotonic() + max_seconds
    logger.info(f"Results stream opened for election {election_id}")
    try:
        yield sse_comment('connected')
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                event = events.get(timeout=min(keepalive, remaining))
            except queue.Empty:
                yield sse_comment()
                continue
            yield format_sse(event.as_dict(), event='tally', event_id=event.sequence)
    finally:
        subscription()
        logger.info(f"Results stream closed for election {election_id}")


@require_http_methods(["GET"])
def results_stream(request, election_id):
    """
    Live tally updates as server-sent events.

    Each accepted ballot produces one "tally" event:
        {"electionId", "candidateId", "voteCount", "totalVotes", "sequence"}

    Delivery is best effort; clients re-read /results/ after reconnecting.
    """

    election = _get_election(election_id)
    if election is None:
        return _error(404, 'Election not found.')

    if not _results_visible(election, getattr(request, 'actor', None)):
        return _error(403, 'Results are published when the election ends.')

    response = StreamingHttpResponse(
        _stream_tally_events(
            get_engine().broadcaster,
            str(election.id),
            keepalive=settings.VOTEX_STREAM_KEEPALIVE_SECONDS,
            max_seconds=settings.VOTEX_STREAM_MAX_SECONDS,
        ),
        content_type='text/event-stream',
    )
    response['Cache-Control'] = 'no-cache'
    response['X-Accel-Buffering'] = 'no'  # nginx: do not buffer the stream
    return response


@require_http_methods(["GET"])
def election_list(request):
    """
    All elections with candidate and ballot counts.

    Query params:
        status: optional filter (upcoming / active / completed)
    """

    elections = Election.objects.annotate(
        candidate_count=Count('candidates', distinct=True),
        vote_count=Count('ballots', distinct=True),
    ).order_by('-start_at')

    status = request.GET.get('status')
    if status:
        if status not in dict(Election.STATUS_CHOICES):
            return _error(400, 'Unknown status.')
        elections = elections.filter(status=status)

    return JsonResponse({
        'success': True,
        'elections': [
            {
                'id': str(election.id),
                'title': election.title,
                'description': election.description,
                'status': election.status,
                'startAt': election.start_at.isoformat(),
                'endAt': election.end_at.isoformat(),
                'liveResults': election.live_results,
                'candidateCount': election.candidate_count,
                'voteCount': election.vote_count,
            }
            for election in elections
        ],
    })


@require_http_methods(["GET"])
def candidate_list(request):
    """
    Roster of one election, in registration order.

    Query params:
        electionId: required
    """

    form = CandidateListForm(request.GET)
    if not form.is_valid():
        return _error(400, 'electionId is required.', errors=form.errors.get_json_data())

    election = _get_election(form.cleaned_data['electionId'])
    if election is None:
        return _error(404, 'Election not found.')

    candidates = election.candidates.order_by('roster_position')

    return JsonResponse({
        'success': True,
        'election': {
            'id': str(election.id),
            'title': election.title,
            'status': election.status,
        },
        'candidates': [
            {
                'candidateId': str(candidate.id),
                'name': candidate.name,
                'party': candidate.party,
                'platform': candidate.platform,
                'bio': candidate.bio,
                'rosterPosition': candidate.roster_position,
            }
            for candidate in candidates
        ],
    })
