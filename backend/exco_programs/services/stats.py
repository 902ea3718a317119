from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func, select

from exco_programs import get_db
from exco_programs.domain.program import CENTS
from exco_programs.domain.status import APPROVED_STATUSES, PENDING_REVIEW_STATUSES, Status
from exco_programs.models.program import ProgramRecord


def _money(value) -> str:
    return str(Decimal(value or 0).quantize(CENTS))


def dashboard_stats(owner_id: Optional[int] = None, session=None) -> Dict[str, Any]:
    """Counts and budget totals per status group.

    ``owner_id`` restricts the figures to one user's programs (EXCO view);
    None covers every program (finance and admin views).
    """
    session = session or get_db()
    stmt = select(
        ProgramRecord.status,
        func.count(ProgramRecord.id),
        func.sum(ProgramRecord.budget),
        func.sum(ProgramRecord.budget_deducted),
    ).group_by(ProgramRecord.status)
    if owner_id is not None:
        stmt = stmt.where(ProgramRecord.user_id == owner_id)

    by_status = {s.value: {'count': 0, 'budget': Decimal('0')} for s in Status}
    deducted = Decimal('0')
    for status, count, budget, status_deducted in session.execute(stmt):
        bucket = by_status.setdefault(status, {'count': 0, 'budget': Decimal('0')})
        bucket['count'] += count
        bucket['budget'] += Decimal(budget or 0)
        deducted += Decimal(status_deducted or 0)

    def total(statuses, key):
        return sum((by_status[s.value][key] for s in statuses), Decimal('0') if key == 'budget' else 0)

    return {
        'totalPrograms': sum(b['count'] for b in by_status.values()),
        'draftPrograms': by_status[Status.DRAFT.value]['count'],
        'pendingPrograms': total(PENDING_REVIEW_STATUSES, 'count'),
        'approvedPrograms': total(APPROVED_STATUSES, 'count'),
        'rejectedPrograms': by_status[Status.REJECTED.value]['count'],
        'totalBudget': _money(sum((b['budget'] for b in by_status.values()), Decimal('0'))),
        'pendingBudget': _money(total(PENDING_REVIEW_STATUSES, 'budget')),
        'approvedBudget': _money(total(APPROVED_STATUSES, 'budget')),
        'totalDeducted': _money(deducted),
        'byStatus': {k: {'count': v['count'], 'budget': _money(v['budget'])} for k, v in by_status.items()},
    }
