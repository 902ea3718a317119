"""Canonical status metadata for presentation layers.

One table replaces the per-screen label/colour maps. Tones are semantic
names; mapping them to colours is the client's business.
"""
from __future__ import annotations
from typing import Any, Dict, List

from exco_programs.domain.program import iso
from exco_programs.domain.status import ORDERED_STATUSES, TERMINAL_STATUSES, Status, parse_status, timeline

NOT_PROVIDED = 'Not yet provided'

STATUS_DISPLAY: Dict[Status, Dict[str, str]] = {
    Status.DRAFT: {'label': 'Draft', 'tone': 'neutral', 'timeline': 'Draft'},
    Status.SUBMITTED: {'label': 'Under Review', 'tone': 'info', 'timeline': 'Submitted'},
    Status.QUERIED: {'label': 'Query', 'tone': 'warning', 'timeline': 'Query'},
    Status.ANSWERED_QUERY: {'label': 'Query Answered', 'tone': 'info', 'timeline': 'Query Answered'},
    Status.APPROVED: {
        'label': 'Complete and can be sent to MMK office', 'tone': 'success', 'timeline': 'Send to MMK',
    },
    Status.MMK_ACCEPTED: {
        'label': 'Document Accepted by MMK Office', 'tone': 'success', 'timeline': 'MMK Accepted',
    },
    Status.PAYMENT_IN_PROGRESS: {
        'label': 'Payment in Progress', 'tone': 'info', 'timeline': 'Payment in Progress',
    },
    Status.PAYMENT_COMPLETED: {
        'label': 'Payment Completed', 'tone': 'success', 'timeline': 'Payment Completed',
    },
    Status.REJECTED: {'label': 'Rejected', 'tone': 'danger', 'timeline': 'Rejected'},
}

FINANCE_FIELDS = (
    ('voucher_number', 'voucherNumber'),
    ('eft_number', 'eftNumber'),
    ('letter_reference_number', 'letterReferenceNumber'),
)


def status_label(status) -> str:
    return STATUS_DISPLAY[parse_status(status)]['label']


def status_meta(status) -> Dict[str, Any]:
    s = parse_status(status)
    return {'status': s.value, **STATUS_DISPLAY[s], 'terminal': s in TERMINAL_STATUSES}


def all_status_meta() -> List[Dict[str, Any]]:
    ordered = list(ORDERED_STATUSES) + [Status.REJECTED]
    return [dict(status_meta(s), position=i) for i, s in enumerate(ordered)]


def finance_fields_display(program) -> Dict[str, str]:
    return {
        key: getattr(program, attr) or NOT_PROVIDED
        for attr, key in FINANCE_FIELDS
    }


def timeline_display(program) -> Dict[str, Any]:
    """Timeline steps with labels and the timestamp that completed each step, when known."""
    stamps = {
        Status.DRAFT: program.created_at,
        Status.SUBMITTED: program.submitted_at,
        Status.QUERIED: program.queries[-1].query_date if program.queries else None,
        Status.ANSWERED_QUERY: next(
            (q.answered_at for q in reversed(program.queries) if q.answered_at is not None), None
        ),
        Status.APPROVED: program.approved_at,
        Status.MMK_ACCEPTED: program.mmk_accepted_at,
        Status.PAYMENT_IN_PROGRESS: program.payment_started_at,
        Status.PAYMENT_COMPLETED: program.payment_completed_at,
    }
    steps = []
    for step in timeline(program):
        steps.append({
            **step.to_dict(),
            'label': STATUS_DISPLAY[step.status]['timeline'],
            'at': iso(stamps.get(step.status)),
        })
    return {
        'status': program.status.value,
        'isRejected': program.is_rejected,
        'rejectedAt': iso(program.rejected_at),
        'rejectionReason': program.rejection_reason,
        'steps': steps,
    }
