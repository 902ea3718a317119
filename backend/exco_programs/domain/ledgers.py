"""Append-only query, deduction and remark ledgers attached to a Program.

Entries are only ever appended; the single permitted in-place change is a
query flipping from pending to answered. Deduction corrections are new
``reversal`` entries with a negative amount pointing at the original.
"""
from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from .errors import AmbiguousPendingQuery, ValidationFailed
from .program import (
    CENTS,
    KIND_DEDUCTION,
    KIND_REVERSAL,
    QUERY_ANSWERED,
    BudgetDeduction,
    DocumentRef,
    Program,
    ProgramQuery,
    Remark,
)


def new_entry_id() -> str:
    return uuid.uuid4().hex


# ---------- queries ---------- #

def pending_queries(program: Program) -> List[ProgramQuery]:
    return [q for q in program.queries if q.is_pending]


def pending_query(program: Program) -> Optional[ProgramQuery]:
    """Return the one pending query, None if there is none.

    More than one pending entry is inconsistent data and fails closed.
    """
    pending = pending_queries(program)
    if len(pending) > 1:
        raise AmbiguousPendingQuery(program.id, [q.id for q in pending])
    return pending[0] if pending else None


def append_query(program: Program, text: str, actor_id: Optional[int], actor_name: Optional[str],
                 now: datetime) -> ProgramQuery:
    entry = ProgramQuery(
        id=new_entry_id(),
        query_text=text,
        queried_by=actor_id,
        queried_by_name=actor_name,
        query_date=now,
    )
    program.queries.append(entry)
    return entry


def answer_pending_query(program: Program, text: str, actor_id: Optional[int], actor_name: Optional[str],
                         now: datetime) -> ProgramQuery:
    entry = pending_query(program)
    if entry is None:
        raise ValidationFailed('answer_text', 'There is no pending query to answer')
    entry.answer_text = text
    entry.answered_by = actor_id
    entry.answered_by_name = actor_name
    entry.answered_at = now
    entry.status = QUERY_ANSWERED
    return entry


# ---------- deductions ---------- #

def total_deducted(program: Program) -> Decimal:
    return sum((d.deduction_amount for d in program.budget_deductions), Decimal('0.00')).quantize(CENTS)


def remaining_budget(program: Program) -> Decimal:
    return (program.budget - total_deducted(program)).quantize(CENTS)


def find_deduction(program: Program, deduction_id: str) -> Optional[BudgetDeduction]:
    for entry in program.budget_deductions:
        if entry.id == deduction_id:
            return entry
    return None


def is_reversed(program: Program, deduction_id: str) -> bool:
    return any(
        d.kind == KIND_REVERSAL and d.reverses_id == deduction_id for d in program.budget_deductions
    )


def append_deduction(program: Program, amount: Decimal, reason: str, actor_id: Optional[int],
                     actor_name: Optional[str], now: datetime) -> BudgetDeduction:
    """Record a deduction. ``amount`` must already be checked against the remaining budget."""
    entry = BudgetDeduction(
        id=new_entry_id(),
        deduction_amount=amount.quantize(CENTS),
        deduction_reason=reason,
        deducted_by=actor_id,
        deducted_by_name=actor_name,
        deduction_date=now,
    )
    program.budget_deductions.append(entry)
    program.budget_deducted = total_deducted(program)
    return entry


def append_reversal(program: Program, original: BudgetDeduction, reason: str, actor_id: Optional[int],
                    actor_name: Optional[str], now: datetime) -> BudgetDeduction:
    entry = BudgetDeduction(
        id=new_entry_id(),
        deduction_amount=-original.deduction_amount,
        deduction_reason=reason,
        deducted_by=actor_id,
        deducted_by_name=actor_name,
        deduction_date=now,
        kind=KIND_REVERSAL,
        reverses_id=original.id,
    )
    program.budget_deductions.append(entry)
    program.budget_deducted = total_deducted(program)
    return entry


def budget_summary(program: Program) -> Dict[str, object]:
    deducted = total_deducted(program)
    remaining = remaining_budget(program)
    if program.budget > 0:
        utilization = float((deducted / program.budget * 100).quantize(CENTS))
    else:
        utilization = 0.0
    return {
        'allocated': str(program.budget),
        'deducted': str(deducted),
        'remaining': str(remaining),
        'utilizationPercentage': utilization,
        'entries': len(program.budget_deductions),
    }


# ---------- remarks ---------- #

def append_remark(program: Program, text: str, actor_id: Optional[int], actor_name: Optional[str],
                  now: datetime) -> Remark:
    entry = Remark(
        id=new_entry_id(),
        remark_text=text,
        remarked_by=actor_id,
        remarked_by_name=actor_name,
        created_at=now,
    )
    program.remarks.append(entry)
    return entry


# ---------- documents ---------- #

def append_documents(program: Program, uploads: List[DocumentRef], now: datetime) -> List[DocumentRef]:
    """Append newly uploaded references; earlier ones stay as history.

    Versions are numbered per category in upload order, ignoring whatever the
    client sent.
    """
    added = []
    for doc in uploads:
        version = 1 + sum(1 for d in program.documents if d.category == doc.category)
        entry = DocumentRef(
            stored_name=doc.stored_name,
            original_name=doc.original_name,
            size=doc.size,
            category=doc.category,
            version=version,
            uploaded_at=now,
        )
        program.documents.append(entry)
        added.append(entry)
    return added


def document_history(program: Program, category: Optional[str] = None) -> List[DocumentRef]:
    """Every reference ever uploaded, newest version first within a category."""
    docs = [d for d in program.documents if category is None or d.category == category]
    return sorted(docs, key=lambda d: (d.category or '', -d.version))


def current_documents(program: Program) -> List[DocumentRef]:
    """Latest reference per checklist category plus every uncategorized one.

    Order follows the original upload order of the surviving references.
    """
    latest: Dict[str, int] = {}
    for idx, doc in enumerate(program.documents):
        if doc.category is None:
            continue
        prev = latest.get(doc.category)
        if prev is None or doc.version >= program.documents[prev].version:
            latest[doc.category] = idx
    keep = set(latest.values())
    return [d for i, d in enumerate(program.documents) if d.category is None or i in keep]


__all__ = [
    'new_entry_id', 'pending_queries', 'pending_query', 'append_query', 'answer_pending_query',
    'total_deducted', 'remaining_budget', 'find_deduction', 'is_reversed', 'append_deduction',
    'append_reversal', 'budget_summary', 'append_remark', 'append_documents', 'document_history',
    'current_documents', 'KIND_DEDUCTION',
]
