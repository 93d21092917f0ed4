"""
Live Update Broadcaster
=======================

In-process publish/subscribe of tally changes, keyed by election.

Delivery rules:
- Publishes for one election are serialized and numbered; every subscriber
  receives them in sequence order
- Delivery is at-most-once: a handler that raises is logged and skipped,
  and the publisher never sees the failure
- Nothing is buffered for absent subscribers; a reconnecting client reads
  the full results first
"""

from contextlib import contextmanager
from dataclasses import dataclass
import itertools
import logging
import threading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TallyEvent:
    election_id: str
    candidate_id: str
    vote_count: int
    total_votes: int
    sequence: int

    def as_dict(self):
        return {
            'electionId': self.election_id,
            'candidateId': self.candidate_id,
            'voteCount': self.vote_count,
            'totalVotes': self.total_votes,
            'sequence': self.sequence,
        }


class Subscription:
    """Handle returned by subscribe(); call it (or .cancel()) to unsubscribe."""

    def __init__(self, broadcaster, election_id, token):
        self._broadcaster = broadcaster
        self.election_id = election_id
        self._token = token
        self.active = True

    def cancel(self):
        if self.active:
            self.active = False
            self._broadcaster._remove(self.election_id, self._token)

    __call__ = cancel


class _Channel:
    """Subscribers and ordering state of one election."""

    def __init__(self):
        self.lock = threading.RLock()
        self.handlers = {}  # token -> handler, insertion ordered
        self.sequence = 0
        self.users = 0  # callers currently holding the channel


class Broadcaster:
    """
    Channels exist only while an election has subscribers or a caller is
    using it. An idle channel is dropped, and its sequence starts again
    from 1 the next time the election is used.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._channels = {}
        self._tokens = itertools.count(1)

    @contextmanager
    def _checkout(self, election_id, create=True):
        """Pin the channel of election_id for the duration of the block."""
        with self._guard:
            channel = self._channels.get(election_id)
            if channel is None:
                if not create:
                    yield None
                    return
                channel = self._channels[election_id] = _Channel()
            channel.users += 1
        try:
            yield channel
        finally:
            with self._guard:
                channel.users -= 1
                if not channel.users and not channel.handlers:
                    self._channels.pop(election_id, None)

    @contextmanager
    def ordered(self, election_id):
        """
        Hold the lock that serializes publishes for one election.

        Callers hold it from the tally update through commit and publish, so
        events go out in commit order and the totals they announce are
        monotonic for the election. Reentrant for publish().
        """
        with self._checkout(str(election_id)) as channel:
            with channel.lock:
                yield

    def subscribe(self, election_id, handler):
        """
        Register handler(TallyEvent) for one election.

        Returns:
            Subscription; unsubscribing more than once is a no-op
        """
        election_id = str(election_id)
        token = next(self._tokens)
        with self._checkout(election_id) as channel:
            with channel.lock:
                channel.handlers[token] = handler
        logger.debug(f"Subscriber {token} added to election {election_id}")
        return Subscription(self, election_id, token)

    def _remove(self, election_id, token):
        with self._checkout(election_id, create=False) as channel:
            if channel is None:
                return
            with channel.lock:
                channel.handlers.pop(token, None)
        logger.debug(f"Subscriber {token} removed from election {election_id}")

    def publish(self, election_id, candidate_id, vote_count, total_votes):
        """
        Fire-and-forget notification to every subscriber of election_id.

        Returns:
            The TallyEvent that was sent
        """
        election_id = str(election_id)
        with self._checkout(election_id) as channel:
            with channel.lock:
                channel.sequence += 1
                event = TallyEvent(
                    election_id=election_id,
                    candidate_id=str(candidate_id),
                    vote_count=vote_count,
                    total_votes=total_votes,
                    sequence=channel.sequence,
                )
                handlers = list(channel.handlers.items())
                for token, handler in handlers:
                    try:
                        handler(event)
                    except Exception as e:
                        logger.warning(f"Subscriber {token} of election {election_id} "
                                       f"failed on event {event.sequence}: {str(e)}")

        logger.debug(f"Published tally event {event.sequence} for election {election_id} "
                     f"to {len(handlers)} subscribers")
        return event

    def subscriber_count(self, election_id):
        with self._guard:
            channel = self._channels.get(str(election_id))
            return len(channel.handlers) if channel is not None else 0
