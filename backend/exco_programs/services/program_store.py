"""Persistence collaborator: maps Program snapshots to and from rows.

``save`` is a compare-and-swap on ``updated_at``: the caller passes the version
it loaded and a mismatch raises StaleSnapshot. Ledger tables are append-only
here as well; the only update ever issued on a ledger row is a query moving
from pending to answered. Nothing commits in this module; the request owns the
transaction.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Optional

from sqlalchemy import select

from exco_programs import get_db
from exco_programs.domain.errors import StaleSnapshot
from exco_programs.domain.program import (
    CENTS,
    QUERY_ANSWERED,
    BudgetDeduction,
    DocumentRef,
    Program,
    ProgramQuery,
    Remark,
    as_utc,
    iso,
)
from exco_programs.domain.status import parse_status
from exco_programs.models.program import (
    BudgetDeductionRecord,
    ProgramQueryRecord,
    ProgramRecord,
    ProgramRemarkRecord,
)

_SCALARS = (
    'title', 'description', 'department', 'recipient_name', 'start_date', 'end_date',
    'submitted_by', 'voucher_number', 'eft_number', 'letter_reference_number',
    'submitted_at', 'approved_by', 'approved_at', 'rejected_by', 'rejected_at', 'rejection_reason',
    'mmk_accepted_by', 'mmk_accepted_at', 'payment_started_at', 'payment_completed_at',
)
_TIMESTAMPS = frozenset({
    'submitted_at', 'approved_at', 'rejected_at', 'mmk_accepted_at', 'payment_started_at', 'payment_completed_at',
})


def record_version(rec: ProgramRecord) -> str:
    return iso(rec.updated_at) or ''


def query_from_row(q: ProgramQueryRecord) -> ProgramQuery:
    return ProgramQuery(
        id=q.id, query_text=q.query_text, queried_by=q.queried_by, queried_by_name=q.queried_by_name,
        query_date=as_utc(q.query_date), status=q.status, answer_text=q.answer_text,
        answered_by=q.answered_by, answered_by_name=q.answered_by_name, answered_at=as_utc(q.answered_at),
    )


def to_snapshot(rec: ProgramRecord) -> Program:
    """Build a detached Program from a row. Raises UnknownStatus on bad data."""
    status = parse_status(rec.status)
    values = {name: getattr(rec, name) for name in _SCALARS}
    for name in _TIMESTAMPS:
        values[name] = as_utc(values[name])
    return Program(
        id=rec.id,
        budget=rec.budget.quantize(CENTS),
        user_id=rec.user_id,
        status=status,
        objectives=list(rec.objectives or []),
        kpi=list(rec.kpi or []),
        documents=[DocumentRef.from_dict(d) for d in rec.documents or []],
        budget_deducted=Decimal(rec.budget_deducted or 0).quantize(CENTS),
        queries=[query_from_row(q) for q in rec.queries],
        budget_deductions=[
            BudgetDeduction(
                id=d.id, deduction_amount=d.deduction_amount.quantize(CENTS), deduction_reason=d.deduction_reason,
                deducted_by=d.deducted_by, deducted_by_name=d.deducted_by_name,
                deduction_date=as_utc(d.deduction_date), kind=d.kind, reverses_id=d.reverses_id,
            )
            for d in rec.deductions
        ],
        remarks=[
            Remark(
                id=r.id, remark_text=r.remark_text, remarked_by=r.remarked_by,
                remarked_by_name=r.remarked_by_name, created_at=as_utc(r.created_at),
            )
            for r in rec.remarks
        ],
        created_at=as_utc(rec.created_at),
        updated_at=as_utc(rec.updated_at),
        **values,
    )


class ProgramStore:
    def __init__(self, session=None):
        self.session = session or get_db()

    def get_record(self, program_id: int, lock: bool = False) -> Optional[ProgramRecord]:
        stmt = select(ProgramRecord).where(ProgramRecord.id == program_id)
        if lock:
            # row lock on databases that support it; SQLite serializes writers anyway
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def load(self, program_id: int, lock: bool = True) -> Optional[Program]:
        rec = self.get_record(program_id, lock=lock)
        return to_snapshot(rec) if rec is not None else None

    def add(self, program: Program) -> Program:
        """Insert a freshly created draft and return it with its id assigned."""
        rec = ProgramRecord(
            budget=program.budget,
            user_id=program.user_id,
            status=program.status.value,
            objectives=list(program.objectives),
            kpi=list(program.kpi),
            documents=[d.to_dict() for d in program.documents],
            budget_deducted=program.budget_deducted,
            created_at=program.created_at,
            updated_at=program.updated_at,
            **{name: getattr(program, name) for name in _SCALARS},
        )
        self.session.add(rec)
        self.session.flush()
        return to_snapshot(rec)

    def _locked_current(self, program: Program, expected_version: Optional[str]) -> ProgramRecord:
        rec = self.get_record(program.id, lock=True)
        if rec is None:
            raise StaleSnapshot(expected_version, None)
        actual = record_version(rec)
        if expected_version is not None and expected_version != actual:
            raise StaleSnapshot(expected_version, actual)
        return rec

    def save(self, program: Program, expected_version: Optional[str]) -> Program:
        rec = self._locked_current(program, expected_version)
        for name in _SCALARS:
            setattr(rec, name, getattr(program, name))
        rec.status = program.status.value
        rec.objectives = list(program.objectives)
        rec.kpi = list(program.kpi)
        rec.documents = [d.to_dict() for d in program.documents]
        rec.budget_deducted = program.budget_deducted
        rec.updated_at = program.updated_at
        self._sync_queries(rec, program)
        self._append_new(rec.deductions, program.budget_deductions, self._deduction_row)
        self._append_new(rec.remarks, program.remarks, self._remark_row)
        self.session.flush()
        return to_snapshot(rec)

    def delete(self, program: Program, expected_version: Optional[str]) -> None:
        rec = self._locked_current(program, expected_version)
        self.session.delete(rec)
        self.session.flush()

    # ---------- ledger rows ---------- #
    @staticmethod
    def _append_new(rows, entries, make_row):
        known = {r.id for r in rows}
        seq = max((r.seq for r in rows), default=0)
        for entry in entries:
            if entry.id in known:
                continue
            seq += 1
            rows.append(make_row(entry, seq))

    def _sync_queries(self, rec: ProgramRecord, program: Program):
        by_id = {q.id: q for q in rec.queries}
        for entry in program.queries:
            row = by_id.get(entry.id)
            if row is not None and row.status != QUERY_ANSWERED and entry.status == QUERY_ANSWERED:
                row.status = QUERY_ANSWERED
                row.answer_text = entry.answer_text
                row.answered_by = entry.answered_by
                row.answered_by_name = entry.answered_by_name
                row.answered_at = entry.answered_at
        self._append_new(rec.queries, program.queries, self._query_row)

    @staticmethod
    def _query_row(q: ProgramQuery, seq: int) -> ProgramQueryRecord:
        return ProgramQueryRecord(
            id=q.id, seq=seq, query_text=q.query_text, queried_by=q.queried_by,
            queried_by_name=q.queried_by_name, query_date=q.query_date, status=q.status,
            answer_text=q.answer_text, answered_by=q.answered_by, answered_by_name=q.answered_by_name,
            answered_at=q.answered_at,
        )

    @staticmethod
    def _deduction_row(d: BudgetDeduction, seq: int) -> BudgetDeductionRecord:
        return BudgetDeductionRecord(
            id=d.id, seq=seq, deduction_amount=d.deduction_amount, deduction_reason=d.deduction_reason,
            deducted_by=d.deducted_by, deducted_by_name=d.deducted_by_name, deduction_date=d.deduction_date,
            kind=d.kind, reverses_id=d.reverses_id,
        )

    @staticmethod
    def _remark_row(r: Remark, seq: int) -> ProgramRemarkRecord:
        return ProgramRemarkRecord(
            id=r.id, seq=seq, remark_text=r.remark_text, remarked_by=r.remarked_by,
            remarked_by_name=r.remarked_by_name, created_at=r.created_at,
        )
