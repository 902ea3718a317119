"""Program status enumeration and progress ordering.

``rejected`` is deliberately absent from ORDERED_STATUSES: it is a side branch
and is reported through ``is_rejected`` instead of a position on the timeline.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, List

from .errors import UnknownStatus

if TYPE_CHECKING:  # pragma: no cover
    from .program import Program


class Status(str, Enum):
    DRAFT = 'draft'
    SUBMITTED = 'submitted'
    QUERIED = 'queried'
    ANSWERED_QUERY = 'answered_query'
    APPROVED = 'approved'
    MMK_ACCEPTED = 'mmk_accepted'
    PAYMENT_IN_PROGRESS = 'payment_in_progress'
    PAYMENT_COMPLETED = 'payment_completed'
    REJECTED = 'rejected'

    def __str__(self) -> str:
        return self.value


ORDERED_STATUSES: List[Status] = [
    Status.DRAFT,
    Status.SUBMITTED,
    Status.QUERIED,
    Status.ANSWERED_QUERY,
    Status.APPROVED,
    Status.MMK_ACCEPTED,
    Status.PAYMENT_IN_PROGRESS,
    Status.PAYMENT_COMPLETED,
]

TERMINAL_STATUSES = frozenset({Status.REJECTED, Status.PAYMENT_COMPLETED})
NON_TERMINAL_STATUSES = frozenset(s for s in Status if s not in TERMINAL_STATUSES)

# Stages a program counts as "in review" / "approved" for dashboard totals
PENDING_REVIEW_STATUSES = frozenset({Status.SUBMITTED, Status.QUERIED, Status.ANSWERED_QUERY})
APPROVED_STATUSES = frozenset({
    Status.APPROVED, Status.MMK_ACCEPTED, Status.PAYMENT_IN_PROGRESS, Status.PAYMENT_COMPLETED,
})

_RANK = {s: i for i, s in enumerate(ORDERED_STATUSES)}


def parse_status(value: Any) -> Status:
    """Return the Status for ``value`` or raise UnknownStatus. Never defaults."""
    if isinstance(value, Status):
        return value
    try:
        return Status(value)
    except ValueError:
        raise UnknownStatus(value) from None


def is_terminal(status: Status) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def precedes(a: Status, b: Status) -> bool:
    """True when ``a`` comes strictly before ``b`` on the linear progress order."""
    a, b = parse_status(a), parse_status(b)
    if a not in _RANK or b not in _RANK:
        return False
    return _RANK[a] < _RANK[b]


COMPLETED = 'completed'
CURRENT = 'current'
PENDING = 'pending'


@dataclass(frozen=True)
class TimelineStep:
    status: Status
    state: str

    def to_dict(self):
        return {'status': self.status.value, 'state': self.state}


def timeline(program: 'Program') -> List[TimelineStep]:
    """Progress of ``program`` along ORDERED_STATUSES.

    For a rejected program only the stages its own data proves it passed are
    marked completed; everything else stays pending.
    """
    current = parse_status(program.status)
    if current is Status.REJECTED:
        reached = {Status.DRAFT, Status.SUBMITTED}
        if program.queries:
            reached.add(Status.QUERIED)
        if any(q.answered_at is not None for q in program.queries):
            reached.add(Status.ANSWERED_QUERY)
        return [TimelineStep(s, COMPLETED if s in reached else PENDING) for s in ORDERED_STATUSES]
    steps = []
    for s in ORDERED_STATUSES:
        if s is current:
            state = CURRENT
        elif precedes(s, current):
            state = COMPLETED
        else:
            state = PENDING
        steps.append(TimelineStep(s, state))
    return steps


__all__ = [
    'Status', 'ORDERED_STATUSES', 'TERMINAL_STATUSES', 'NON_TERMINAL_STATUSES',
    'PENDING_REVIEW_STATUSES', 'APPROVED_STATUSES',
    'parse_status', 'is_terminal', 'precedes', 'timeline', 'TimelineStep',
    'COMPLETED', 'CURRENT', 'PENDING',
]
