"""Program snapshot and its sub-ledger entry types.

Snapshots are plain dataclasses with no session attached; the workflow engine
operates on them and the store maps them to and from ORM rows.

Wire format (``to_dict`` / ``from_dict``) uses camelCase keys, ISO-8601
timestamps with a ``Z`` suffix, ISO dates and decimal strings so that a round
trip reproduces the exact structure, ledger order included.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

from .errors import ValidationFailed
from .status import Status, parse_status

CENTS = Decimal('0.01')
# largest value a Numeric(14, 2) column holds
MAX_AMOUNT = Decimal('999999999999.99')

QUERY_PENDING = 'pending'
QUERY_ANSWERED = 'answered'

KIND_DEDUCTION = 'deduction'
KIND_REVERSAL = 'reversal'

DOCUMENT_CATEGORIES = (
    'Surat Akuan Pusat Khidmat',
    'Surat Kelulusan Pkn',
    'Surat Program',
    'Surat Exco',
    'Penyata Akaun Bank',
    'Borang Daftar Kod',
)


# ---------- scalar helpers ---------- #

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: Any, field_name: str = 'amount') -> Decimal:
    if isinstance(value, bool) or value is None or value == '':
        raise ValidationFailed(field_name, f"{field_name} must be a number")
    try:
        dec = Decimal(str(value))
        if not dec.is_finite():
            raise ValidationFailed(field_name, f"{field_name} must be a finite number")
        if abs(dec) > MAX_AMOUNT:
            raise ValidationFailed(field_name, f"{field_name} must not exceed {MAX_AMOUNT}")
        return dec.quantize(CENTS)
    except (InvalidOperation, ValueError):
        raise ValidationFailed(field_name, f"{field_name} must be a number") from None


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return as_utc(dt).isoformat().replace('+00:00', 'Z')


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))


def parse_date(value: Any, field_name: str = 'date') -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationFailed(field_name, f"{field_name} must be an ISO date (YYYY-MM-DD)") from None


def _date_iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


# ---------- ledger entries ---------- #

@dataclass
class ProgramQuery:
    id: str
    query_text: str
    queried_by: Optional[int]
    queried_by_name: Optional[str]
    query_date: datetime
    status: str = QUERY_PENDING
    answer_text: Optional[str] = None
    answered_by: Optional[int] = None
    answered_by_name: Optional[str] = None
    answered_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == QUERY_PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'queryText': self.query_text,
            'queriedBy': self.queried_by,
            'queriedByName': self.queried_by_name,
            'queryDate': iso(self.query_date),
            'status': self.status,
            'answerText': self.answer_text,
            'answeredBy': self.answered_by,
            'answeredByName': self.answered_by_name,
            'answeredAt': iso(self.answered_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProgramQuery':
        status = data.get('status', QUERY_PENDING)
        if status not in (QUERY_PENDING, QUERY_ANSWERED):
            raise ValidationFailed('queries.status', f"query status {status!r} invalid")
        return cls(
            id=str(data['id']),
            query_text=data['queryText'],
            queried_by=data.get('queriedBy'),
            queried_by_name=data.get('queriedByName'),
            query_date=parse_datetime(data['queryDate']),
            status=status,
            answer_text=data.get('answerText'),
            answered_by=data.get('answeredBy'),
            answered_by_name=data.get('answeredByName'),
            answered_at=parse_datetime(data.get('answeredAt')),
        )


@dataclass
class BudgetDeduction:
    id: str
    deduction_amount: Decimal
    deduction_reason: str
    deducted_by: Optional[int]
    deducted_by_name: Optional[str]
    deduction_date: datetime
    kind: str = KIND_DEDUCTION
    reverses_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'deductionAmount': str(self.deduction_amount),
            'deductionReason': self.deduction_reason,
            'deductedBy': self.deducted_by,
            'deductedByName': self.deducted_by_name,
            'deductionDate': iso(self.deduction_date),
            'kind': self.kind,
            'reversesId': self.reverses_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BudgetDeduction':
        return cls(
            id=str(data['id']),
            deduction_amount=to_decimal(data['deductionAmount'], 'deductionAmount'),
            deduction_reason=data['deductionReason'],
            deducted_by=data.get('deductedBy'),
            deducted_by_name=data.get('deductedByName'),
            deduction_date=parse_datetime(data['deductionDate']),
            kind=data.get('kind', KIND_DEDUCTION),
            reverses_id=data.get('reversesId'),
        )


@dataclass
class Remark:
    id: str
    remark_text: str
    remarked_by: Optional[int]
    remarked_by_name: Optional[str]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'remarkText': self.remark_text,
            'remarkedBy': self.remarked_by,
            'remarkedByName': self.remarked_by_name,
            'createdAt': iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Remark':
        return cls(
            id=str(data['id']),
            remark_text=data['remarkText'],
            remarked_by=data.get('remarkedBy'),
            remarked_by_name=data.get('remarkedByName'),
            created_at=parse_datetime(data['createdAt']),
        )


@dataclass
class DocumentRef:
    stored_name: str
    original_name: str
    size: int = 0
    category: Optional[str] = None
    version: int = 1
    uploaded_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'storedName': self.stored_name,
            'originalName': self.original_name,
            'size': self.size,
            'category': self.category,
            'version': self.version,
            'uploadedAt': iso(self.uploaded_at),
        }

    @classmethod
    def from_dict(cls, data: Union[str, Dict[str, Any]]) -> 'DocumentRef':
        # Legacy rows stored bare file names
        if isinstance(data, str):
            return cls(stored_name=data, original_name=data)
        return cls(
            stored_name=data['storedName'],
            original_name=data.get('originalName') or data['storedName'],
            size=int(data.get('size') or 0),
            category=data.get('category'),
            version=int(data.get('version') or 1),
            uploaded_at=parse_datetime(data.get('uploadedAt')),
        )


# ---------- actor ---------- #

@dataclass(frozen=True)
class Actor:
    """Who is acting. Supplied by the identity layer and trusted as given."""
    id: Optional[int]
    role: str
    name: Optional[str] = None


# ---------- program ---------- #

@dataclass
class Program:
    id: Optional[int]
    title: str
    budget: Decimal
    user_id: int
    submitted_by: Optional[str] = None
    status: Status = Status.DRAFT
    description: str = ''
    department: str = ''
    recipient_name: str = ''
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    objectives: List[str] = field(default_factory=list)
    kpi: List[Any] = field(default_factory=list)
    documents: List[DocumentRef] = field(default_factory=list)
    voucher_number: Optional[str] = None
    eft_number: Optional[str] = None
    letter_reference_number: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    mmk_accepted_by: Optional[int] = None
    mmk_accepted_at: Optional[datetime] = None
    payment_started_at: Optional[datetime] = None
    payment_completed_at: Optional[datetime] = None
    budget_deducted: Decimal = Decimal('0.00')
    budget_deductions: List[BudgetDeduction] = field(default_factory=list)
    queries: List[ProgramQuery] = field(default_factory=list)
    remarks: List[Remark] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def version(self) -> str:
        """Optimistic-concurrency token derived from ``updated_at``."""
        return iso(self.updated_at) or ''

    @property
    def is_rejected(self) -> bool:
        return self.status is Status.REJECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'department': self.department,
            'recipientName': self.recipient_name,
            'budget': str(self.budget),
            'startDate': _date_iso(self.start_date),
            'endDate': _date_iso(self.end_date),
            'status': self.status.value,
            'isRejected': self.is_rejected,
            'userId': self.user_id,
            'submittedBy': self.submitted_by,
            'objectives': list(self.objectives),
            'kpi': list(self.kpi),
            'documents': [d.to_dict() for d in self.documents],
            'voucherNumber': self.voucher_number,
            'eftNumber': self.eft_number,
            'letterReferenceNumber': self.letter_reference_number,
            'submittedAt': iso(self.submitted_at),
            'approvedBy': self.approved_by,
            'approvedAt': iso(self.approved_at),
            'rejectedBy': self.rejected_by,
            'rejectedAt': iso(self.rejected_at),
            'rejectionReason': self.rejection_reason,
            'mmkAcceptedBy': self.mmk_accepted_by,
            'mmkAcceptedAt': iso(self.mmk_accepted_at),
            'paymentStartedAt': iso(self.payment_started_at),
            'paymentCompletedAt': iso(self.payment_completed_at),
            'budgetDeducted': str(self.budget_deducted),
            'budgetDeductions': [d.to_dict() for d in self.budget_deductions],
            'queries': [q.to_dict() for q in self.queries],
            'remarks': [r.to_dict() for r in self.remarks],
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Program':
        # status is validated first so malformed data fails with UnknownStatus
        status = parse_status(data.get('status', Status.DRAFT.value))
        return cls(
            id=data.get('id'),
            title=data['title'],
            description=data.get('description') or '',
            department=data.get('department') or '',
            recipient_name=data.get('recipientName') or '',
            budget=to_decimal(data['budget'], 'budget'),
            start_date=parse_date(data.get('startDate'), 'startDate'),
            end_date=parse_date(data.get('endDate'), 'endDate'),
            status=status,
            user_id=data['userId'],
            submitted_by=data.get('submittedBy'),
            objectives=list(data.get('objectives') or []),
            kpi=list(data.get('kpi') or []),
            documents=[DocumentRef.from_dict(d) for d in data.get('documents') or []],
            voucher_number=data.get('voucherNumber'),
            eft_number=data.get('eftNumber'),
            letter_reference_number=data.get('letterReferenceNumber'),
            submitted_at=parse_datetime(data.get('submittedAt')),
            approved_by=data.get('approvedBy'),
            approved_at=parse_datetime(data.get('approvedAt')),
            rejected_by=data.get('rejectedBy'),
            rejected_at=parse_datetime(data.get('rejectedAt')),
            rejection_reason=data.get('rejectionReason'),
            mmk_accepted_by=data.get('mmkAcceptedBy'),
            mmk_accepted_at=parse_datetime(data.get('mmkAcceptedAt')),
            payment_started_at=parse_datetime(data.get('paymentStartedAt')),
            payment_completed_at=parse_datetime(data.get('paymentCompletedAt')),
            budget_deducted=to_decimal(data.get('budgetDeducted', '0'), 'budgetDeducted'),
            budget_deductions=[BudgetDeduction.from_dict(d) for d in data.get('budgetDeductions') or []],
            queries=[ProgramQuery.from_dict(q) for q in data.get('queries') or []],
            remarks=[Remark.from_dict(r) for r in data.get('remarks') or []],
            created_at=parse_datetime(data.get('createdAt')),
            updated_at=parse_datetime(data.get('updatedAt')),
        )


__all__ = [
    'Program', 'ProgramQuery', 'BudgetDeduction', 'Remark', 'DocumentRef', 'Actor',
    'DOCUMENT_CATEGORIES', 'QUERY_PENDING', 'QUERY_ANSWERED', 'KIND_DEDUCTION', 'KIND_REVERSAL',
    'utcnow', 'to_decimal', 'iso', 'as_utc', 'parse_datetime', 'parse_date',
]
