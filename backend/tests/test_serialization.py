from datetime import date, datetime, timezone
from decimal import Decimal
import pytest
from exco_programs.domain import (
    BudgetDeduction, DocumentRef, Program, ProgramQuery, Remark, Status, UnknownStatus, ValidationFailed,
)

T = datetime(2026, 3, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)


def _full_program():
    return Program(
        id=7, title='Full', budget=Decimal('1500.50'), user_id=3, submitted_by='Aminah',
        status=Status.QUERIED, description='d', department='Dept', recipient_name='Recipient',
        start_date=date(2026, 3, 1), end_date=date(2026, 4, 1),
        objectives=['one', 'two'], kpi=['k', {'target': '10', 'current': '2'}],
        documents=[DocumentRef('s.pdf', 'o.pdf', 12, 'Surat Exco', 2, T)],
        submitted_at=T, budget_deducted=Decimal('100.00'),
        budget_deductions=[
            BudgetDeduction('d1', Decimal('150.00'), 'first', 5, 'Siti', T),
            BudgetDeduction('d2', Decimal('-150.00'), 'undo', 6, 'Lim', T, kind='reversal', reverses_id='d1'),
            BudgetDeduction('d3', Decimal('100.00'), 'second', 5, 'Siti', T),
        ],
        queries=[
            ProgramQuery('q1', 'why', 5, 'Siti', T, status='answered', answer_text='because',
                         answered_by=3, answered_by_name='Aminah', answered_at=T),
            ProgramQuery('q2', 'and?', 5, 'Siti', T),
        ],
        remarks=[Remark('r1', 'noted', 5, 'Siti', T)],
        created_at=T, updated_at=T,
    )


def test_round_trip_reproduces_structure():
    p = _full_program()
    data = p.to_dict()
    again = Program.from_dict(data)
    assert again == p
    assert again.to_dict() == data
    assert [d.id for d in again.budget_deductions] == ['d1', 'd2', 'd3']


def test_wire_format_uses_camel_case_and_strings_for_money():
    data = _full_program().to_dict()
    assert data['budget'] == '1500.50'
    assert data['recipientName'] == 'Recipient'
    assert data['updatedAt'] == '2026-03-01T09:30:15.123456Z'
    assert data['startDate'] == '2026-03-01'
    assert data['budgetDeductions'][1]['reversesId'] == 'd1'
    assert data['queries'][1]['status'] == 'pending'


def test_unknown_status_in_data_is_rejected():
    data = _full_program().to_dict()
    data['status'] = 'closed'
    with pytest.raises(UnknownStatus):
        Program.from_dict(data)


def test_invalid_query_status_is_rejected():
    data = _full_program().to_dict()
    data['queries'][0]['status'] = 'maybe'
    with pytest.raises(ValidationFailed):
        Program.from_dict(data)


def test_legacy_document_names_are_accepted():
    doc = DocumentRef.from_dict('scan.pdf')
    assert doc.stored_name == doc.original_name == 'scan.pdf'
    assert doc.category is None and doc.version == 1
