import copy
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import pytest
from exco_programs.constants.roles import Action
from exco_programs.domain import (
    Actor, AmbiguousPendingQuery, BudgetDeduction, DocumentRef, Forbidden, IllegalTransition, Program, ProgramQuery,
    StaleSnapshot, Status, UnknownStatus, ValidationFailed,
)
from exco_programs.domain.status import TERMINAL_STATUSES
from exco_programs.workflow.engine import apply_transition, create_program, transition_targets
from exco_programs.workflow.transitions import WORKFLOW

T0 = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
OWNER = Actor(1, 'user', 'Ahmad')
OFFICER = Actor(5, 'finance_officer', 'Siti')
MMK = Actor(6, 'finance_mmk', 'Lim')
ADMIN = Actor(7, 'admin', 'Root')


def _program(status=Status.DRAFT, budget='10000.00', **kw):
    return Program(id=42, title='Bantuan', budget=Decimal(budget), user_id=OWNER.id, status=status,
                   created_at=T0, updated_at=T0, **kw)


def _step(program, action, actor, payload=None, minutes=1):
    return apply_transition(program, action, actor, payload, now=T0 + timedelta(minutes=minutes))


def test_owner_submits_draft():
    p = _program()
    out = _step(p, Action.SUBMIT, OWNER)
    assert out.status is Status.SUBMITTED
    assert out.submitted_at == T0 + timedelta(minutes=1)
    assert out.updated_at > p.updated_at
    # input snapshot is left alone
    assert p.status is Status.DRAFT and p.submitted_at is None


def test_query_then_answer_cycle():
    p = _step(_program(), Action.SUBMIT, OWNER)
    queried = _step(p, Action.QUERY, OFFICER, {'queryText': 'need invoice'}, minutes=2)
    assert queried.status is Status.QUERIED
    assert len(queried.queries) == 1
    assert queried.queries[0].status == 'pending'
    assert queried.queries[0].queried_by == OFFICER.id

    answered = _step(queried, Action.ANSWER_QUERY, OWNER, {'answer_text': 'attached'}, minutes=3)
    assert answered.status is Status.ANSWERED_QUERY
    entry = answered.queries[0]
    assert entry.status == 'answered'
    assert entry.answer_text == 'attached'
    assert entry.answered_at == T0 + timedelta(minutes=3)
    assert queried.queries[0].is_pending


def test_deduction_over_budget_fails_and_leaves_ledger():
    p = _step(_program(), Action.SUBMIT, OWNER)
    with pytest.raises(ValidationFailed) as exc:
        _step(p, Action.DEDUCT_BUDGET, OFFICER, {'amount': '12000', 'reason': 'x'})
    assert exc.value.field == 'amount'
    assert 'exceeds remaining budget' in exc.value.message
    assert p.budget_deductions == []


def test_mmk_accept_document_on_queried_is_illegal_not_forbidden():
    p = _program(Status.QUERIED)
    with pytest.raises(IllegalTransition):
        _step(p, Action.ACCEPT_DOCUMENT, MMK)


def test_admin_cannot_approve():
    with pytest.raises(Forbidden):
        _step(_program(Status.SUBMITTED), Action.APPROVE, ADMIN, {'voucherNumber': 'V', 'eftNumber': 'E'})


def test_approve_is_not_idempotent():
    approved = _step(_program(Status.SUBMITTED), Action.APPROVE, OFFICER,
                     {'voucher_number': 'V-1', 'eft_number': 'E-1'})
    assert approved.status is Status.APPROVED
    assert approved.approved_by == OFFICER.id
    with pytest.raises(IllegalTransition):
        _step(approved, Action.APPROVE, OFFICER, {'voucher_number': 'V-2', 'eft_number': 'E-2'}, minutes=2)


def test_approve_requires_finance_numbers():
    with pytest.raises(ValidationFailed) as exc:
        _step(_program(Status.SUBMITTED), Action.APPROVE, OFFICER, {'voucher_number': 'V-1'})
    assert exc.value.field == 'eft_number'


def test_reject_records_reason():
    out = _step(_program(Status.ANSWERED_QUERY), Action.REJECT, MMK, {'rejectionReason': 'incomplete'})
    assert out.status is Status.REJECTED
    assert out.rejection_reason == 'incomplete'
    assert out.rejected_by == MMK.id


def test_full_happy_path_to_payment_completed():
    p = _step(_program(), Action.SUBMIT, OWNER, minutes=1)
    p = _step(p, Action.APPROVE, OFFICER, {'voucherNumber': 'V', 'eftNumber': 'E'}, minutes=2)
    p = _step(p, Action.ACCEPT_DOCUMENT, MMK, minutes=3)
    assert p.mmk_accepted_by == MMK.id
    p = _step(p, Action.START_PAYMENT, MMK, minutes=4)
    p = _step(p, Action.COMPLETE_PAYMENT, MMK, minutes=5)
    assert p.status is Status.PAYMENT_COMPLETED
    assert p.payment_completed_at == T0 + timedelta(minutes=5)


VALID_PAYLOAD = {
    'amount': '1', 'reason': 'r', 'remark_text': 'r', 'query_text': 'q', 'answer_text': 'a',
    'rejection_reason': 'r', 'voucher_number': 'v', 'eft_number': 'e', 'deduction_id': 'd0',
}


@pytest.mark.parametrize('status', sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_states_accept_nothing(status):
    p = _program(status)
    p.budget_deductions.append(BudgetDeduction('d0', Decimal('10.00'), 'earlier', 5, 'Siti', T0))
    p.queries.append(ProgramQuery('q0', '?', 5, 'Siti', T0))
    for actor in (OWNER, OFFICER, MMK):
        for action in Action:
            payload = {'title': 't'} if action is Action.EDIT else VALID_PAYLOAD
            # payloads are valid, so only permission or state can refuse
            with pytest.raises((IllegalTransition, Forbidden)):
                apply_transition(p, action, actor, payload)
    assert p.status is status


def test_resulting_status_is_always_one_step_away():
    payload = {'voucher_number': 'v', 'eft_number': 'e', 'query_text': 'q', 'rejection_reason': 'r',
               'remark_text': 'r', 'amount': '1', 'reason': 'r'}
    for status in Status:
        p = _program(status)
        if status is Status.QUERIED:
            p.queries.append(ProgramQuery('q0', '?', 5, 'Siti', T0))
        for actor in (OWNER, OFFICER, MMK):
            for action in Action:
                try:
                    out = apply_transition(p, action, actor, dict(payload, answer_text='a'))
                except (IllegalTransition, Forbidden, ValidationFailed):
                    continue
                assert out.status in WORKFLOW.targets_from(status)


def test_stale_snapshot_is_rejected_before_anything_else():
    p = _program(Status.SUBMITTED)
    with pytest.raises(StaleSnapshot):
        apply_transition(p, Action.QUERY, OFFICER, {'query_text': 'q'}, expected_version='2020-01-01T00:00:00Z')
    out = apply_transition(p, Action.QUERY, OFFICER, {'query_text': 'q'}, expected_version=p.version)
    assert out.version != p.version


def test_version_advances_even_with_same_clock():
    p = _program(Status.SUBMITTED)
    out = apply_transition(p, Action.ADD_REMARK, OFFICER, {'remark_text': 'ok'}, now=T0)
    assert out.updated_at > p.updated_at
    assert out.status is Status.SUBMITTED
    assert out.remarks[0].remark_text == 'ok'


def test_unknown_persisted_status_fails_loudly():
    p = _program()
    p.status = 'archived'
    with pytest.raises(UnknownStatus):
        apply_transition(p, Action.DEDUCT_BUDGET, OFFICER, {'amount': '1', 'reason': 'r'})


def test_ambiguous_pending_queries_fail_closed():
    p = _program(Status.QUERIED)
    p.queries.append(ProgramQuery('q1', 'first', 5, 'Siti', T0))
    p.queries.append(ProgramQuery('q2', 'second', 5, 'Siti', T0 + timedelta(seconds=1)))
    with pytest.raises(AmbiguousPendingQuery) as exc:
        apply_transition(p, Action.ANSWER_QUERY, OWNER, {'answer_text': 'a'})
    assert exc.value.pending_ids == ['q1', 'q2']
    assert all(q.is_pending for q in p.queries)


def test_answer_without_pending_query_is_illegal():
    with pytest.raises(IllegalTransition) as exc:
        apply_transition(_program(Status.QUERIED), Action.ANSWER_QUERY, OWNER, {'answer_text': 'a'})
    assert 'no pending query' in exc.value.message


def test_non_owner_cannot_submit():
    with pytest.raises(Forbidden):
        apply_transition(_program(), Action.SUBMIT, Actor(99, 'user'))


def test_edit_updates_fields_but_not_status_or_budget():
    p = _program(Status.QUERIED)
    out = apply_transition(p, Action.EDIT, OWNER, {'title': 'New title', 'endDate': '2026-02-01'})
    assert out.title == 'New title'
    assert out.status is Status.QUERIED
    for bad in ({'status': 'approved'}, {'budget': '1'}, {'voucher_number': 'V'}):
        with pytest.raises(ValidationFailed):
            apply_transition(p, Action.EDIT, OWNER, bad)
    with pytest.raises(IllegalTransition):
        apply_transition(_program(Status.SUBMITTED), Action.EDIT, OWNER, {'title': 'x'})


def test_edit_rejects_inverted_dates_and_unknown_document_category():
    p = _program(start_date=None)
    with pytest.raises(ValidationFailed) as exc:
        apply_transition(p, Action.EDIT, OWNER, {'start_date': '2026-03-01', 'end_date': '2026-02-01'})
    assert exc.value.field == 'end_date'
    with pytest.raises(ValidationFailed):
        apply_transition(p, Action.EDIT, OWNER, {'documents': [{'storedName': 'a.pdf', 'category': 'Nope'}]})


def test_delete_returns_unchanged_copy():
    p = _program()
    out = apply_transition(p, Action.DELETE, OWNER)
    assert out == p and out is not p
    with pytest.raises(IllegalTransition):
        apply_transition(_program(Status.SUBMITTED), Action.DELETE, OWNER)


def test_failed_transition_does_not_touch_input():
    p = _program(Status.SUBMITTED)
    before = copy.deepcopy(p)
    with pytest.raises(ValidationFailed):
        apply_transition(p, Action.QUERY, OFFICER, {'query_text': '   '})
    assert p == before


def test_create_program_defaults_to_draft():
    p = create_program(OWNER, {'title': 'Kenduri', 'budget': '2500', 'kpi': [{'target': '10'}]}, now=T0)
    assert p.status is Status.DRAFT
    assert p.budget == Decimal('2500.00')
    assert p.user_id == OWNER.id and p.submitted_by == 'Ahmad'
    assert p.version == '2026-01-05T08:00:00Z'


@pytest.mark.parametrize('payload, field', [
    ({'title': 'x'}, 'budget'),
    ({'title': 'x', 'budget': '-1'}, 'budget'),
    ({'title': 'x', 'budget': 'abc'}, 'budget'),
    ({'budget': '10'}, 'title'),
    ({'title': 'x', 'budget': '10', 'status': 'approved'}, 'status'),
    ({'title': 'x', 'budget': '10', 'kpi': [5]}, 'kpi'),
])
def test_create_program_validation(payload, field):
    with pytest.raises(ValidationFailed) as exc:
        create_program(OWNER, payload)
    assert exc.value.field == field


def test_only_exco_users_create():
    with pytest.raises(Forbidden):
        create_program(OFFICER, {'title': 'x', 'budget': '1'})


def test_transition_targets_view():
    targets = transition_targets()
    assert targets['submit'] == {'from': ['draft'], 'to': 'submitted'}
    assert targets['deduct_budget']['to'] is None


@pytest.mark.parametrize('budget', ['1e30', '1000000000000', '-1e30'])
def test_create_program_rejects_amounts_beyond_column_range(budget):
    with pytest.raises(ValidationFailed) as exc:
        create_program(OWNER, {'title': 'x', 'budget': budget})
    assert exc.value.field == 'budget'


def test_create_program_accepts_largest_storable_budget():
    p = create_program(OWNER, {'title': 'x', 'budget': '999999999999.99'})
    assert p.budget == Decimal('999999999999.99')


def test_huge_deduction_is_a_validation_error():
    p = _program(Status.SUBMITTED)
    with pytest.raises(ValidationFailed) as exc:
        apply_transition(p, Action.DEDUCT_BUDGET, OFFICER, {'amount': '1e30', 'reason': 'r'})
    assert exc.value.field == 'amount'
    assert p.budget_deductions == []


def test_edit_appends_documents_and_keeps_history():
    p = _program(documents=[
        DocumentRef('prog-v1.pdf', 'surat.pdf', category='Surat Program', version=1, uploaded_at=T0),
        DocumentRef('prog-v2.pdf', 'surat.pdf', category='Surat Program', version=2, uploaded_at=T0),
    ])
    unchanged = _step(p, Action.EDIT, OWNER, {'documents': []})
    assert [d.stored_name for d in unchanged.documents] == ['prog-v1.pdf', 'prog-v2.pdf']

    out = _step(p, Action.EDIT, OWNER, {'documents': [
        {'storedName': 'prog-v3.pdf', 'originalName': 'surat.pdf', 'category': 'Surat Program', 'version': 1},
        {'storedName': 'bank.pdf', 'category': 'Penyata Akaun Bank', 'version': 9},
    ]}, minutes=5)
    assert [(d.stored_name, d.version) for d in out.documents] == [
        ('prog-v1.pdf', 1), ('prog-v2.pdf', 2), ('prog-v3.pdf', 3), ('bank.pdf', 1),
    ]
    assert out.documents[2].uploaded_at == T0 + timedelta(minutes=5)
    assert len(p.documents) == 2


def test_create_program_numbers_document_versions_per_category():
    p = create_program(OWNER, {'title': 'x', 'budget': '10', 'documents': [
        {'storedName': 'a.pdf', 'category': 'Surat Exco', 'version': 7},
        {'storedName': 'b.pdf', 'category': 'Surat Exco'},
        {'storedName': 'loose.pdf'},
    ]}, now=T0)
    assert [(d.stored_name, d.version) for d in p.documents] == [('a.pdf', 1), ('b.pdf', 2), ('loose.pdf', 1)]
    assert all(d.uploaded_at == T0 for d in p.documents)
