"""
Tally & Utility Functions
=========================

Small pure helpers shared by the tally engine and the HTTP layer:
- Vote percentages (with the empty-election special case)
- Deterministic ranking of results
- Server-sent-events framing for the live results stream
"""

from typing import Any, Callable, Dict, List, Optional
import json

from django.core.serializers.json import DjangoJSONEncoder # pyright: ignore[reportMissingModuleSource]


def vote_percentage(vote_count: int, total_votes: int) -> float:
    """
    Share of the vote as a percentage rounded to one decimal.

    An election with no ballots yields 0.0 for every candidate.
    """
    if total_votes <= 0:
        return 0.0
    return round(100 * vote_count / total_votes, 1)


def rank_by_votes(rows: List[Dict], count_key: str = 'vote_count') -> List[Dict]:
    """
    Sort rows by vote count, highest first.

    Rows must arrive in registration order: the sort is stable, so candidates
    with equal counts keep that order.
    """
    return sorted(rows, key=lambda row: row[count_key], reverse=True)


def leading_candidate(ranked: List[Any], count: Callable[[Any], int]) -> Optional[Any]:
    """
    Return the single leader of already-ranked results.

    None when nobody has votes yet or the top position is shared.
    """
    if not ranked or count(ranked[0]) == 0:
        return None
    if len(ranked) > 1 and count(ranked[1]) == count(ranked[0]):
        return None
    return ranked[0]


def format_sse(data: Dict, event: Optional[str] = None, event_id: Optional[int] = None) -> str:
    """
    Frame one server-sent event.

    Args:
        data: JSON-serializable payload
        event: Optional event name
        event_id: Optional id (lets EventSource resume with Last-Event-ID)

    Returns:
        The event text, terminated by a blank line
    """
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    if event:
        lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(data, cls=DjangoJSONEncoder)}")
    return "\n".join(lines) + "\n\n"


def sse_comment(text: str = 'keepalive') -> str:
    """Comment frame; ignored by EventSource, keeps proxies from timing out."""
    return f": {text}\n\n"
