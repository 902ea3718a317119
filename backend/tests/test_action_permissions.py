"""Exhaustive role x action x status check of the permission matrix.

The expectations below are written out independently of constants.roles and
workflow.transitions so a change to either shows up here.
"""
import itertools
from decimal import Decimal
import pytest
from exco_programs.constants.roles import Action, Role, parse_action, parse_role
from exco_programs.domain import Actor, Program, ProgramQuery, Status
from exco_programs.domain.program import utcnow
from exco_programs.services.policy import allowed_actions, can_perform, can_view, is_authorized

OWNER_ID = 1
OTHER_ID = 2

GRANTS = {
    'user': {'create', 'edit', 'delete', 'submit', 'answer_query', 'view_own'},
    'finance_officer': {'query', 'approve', 'reject', 'deduct_budget', 'add_remark', 'view_all'},
    'finance_mmk': {'query', 'approve', 'reject', 'deduct_budget', 'add_remark', 'view_all',
                    'accept_document', 'start_payment', 'complete_payment', 'reverse_deduction'},
    'admin': {'view_all'},
    'super_admin': {'view_all'},
}

OWNER_ONLY = {'edit', 'delete', 'submit', 'answer_query', 'view_own'}

ALL = {s.value for s in Status}
OPEN = ALL - {'rejected', 'payment_completed'}
LEGAL_FROM = {
    'submit': {'draft'},
    'query': {'submitted', 'answered_query'},
    'answer_query': {'queried'},
    'approve': {'submitted', 'answered_query'},
    'reject': {'submitted', 'queried', 'answered_query'},
    'accept_document': {'approved'},
    'start_payment': {'mmk_accepted'},
    'complete_payment': {'payment_in_progress'},
    'deduct_budget': OPEN,
    'reverse_deduction': OPEN,
    'add_remark': OPEN - {'draft'},
    'edit': {'draft', 'queried'},
    'delete': {'draft'},
    'create': ALL,
    'view_all': ALL,
    'view_own': ALL,
}


def _program(status: Status) -> Program:
    p = Program(id=10, title='Matrix', budget=Decimal('500.00'), user_id=OWNER_ID, status=status)
    if status is Status.QUERIED:
        p.queries.append(ProgramQuery(id='q', query_text='?', queried_by=9, queried_by_name='F', query_date=utcnow()))
    return p


def _expected(role: str, action: str, status: str, actor_id: int) -> bool:
    if action not in GRANTS.get(role, set()):
        return False
    if action in OWNER_ONLY and actor_id != OWNER_ID:
        return False
    return status in LEGAL_FROM[action]


def test_legal_from_table_covers_every_action():
    assert set(LEGAL_FROM) == {a.value for a in Action}


@pytest.mark.parametrize('role', [r.value for r in Role] + ['guest'])
def test_permission_matrix_is_closed(role):
    mismatches = []
    for action, status, actor_id in itertools.product(Action, Status, (OWNER_ID, OTHER_ID)):
        got = can_perform(role, action, _program(status), actor_id)
        want = _expected(role, action.value, status.value, actor_id)
        if got != want:
            mismatches.append((action.value, status.value, actor_id, got))
    assert mismatches == []


def test_status_free_actions_without_program():
    assert can_perform('user', Action.CREATE, None, OWNER_ID)
    assert can_perform('finance_officer', Action.VIEW_ALL)
    assert not can_perform('finance_officer', Action.CREATE, None, 5)
    # owner-scoped actions need a program to compare against
    assert not can_perform('user', Action.VIEW_OWN, None, OWNER_ID)
    assert not can_perform('finance_mmk', Action.APPROVE, None, 5)


def test_unknown_status_denies_everything_status_bound():
    p = _program(Status.SUBMITTED)
    p.status = 'archived'
    assert not can_perform('finance_officer', Action.APPROVE, p, 5)
    # the grant itself still holds
    assert is_authorized('finance_officer', Action.APPROVE, p, 5)


def test_legacy_role_spellings():
    assert parse_role('Finance MMK') is Role.FINANCE_MMK
    assert parse_role('finance') is Role.FINANCE_OFFICER
    assert parse_role('superadmin') is Role.SUPER_ADMIN
    assert parse_role('nobody') is None
    assert can_perform('Finance MMK', Action.ACCEPT_DOCUMENT, _program(Status.APPROVED), 7)


def test_action_slugs_parse_back():
    for action in Action:
        assert parse_action(action.slug) is action
    assert parse_action('fly') is None


def test_allowed_actions_for_each_role():
    submitted = _program(Status.SUBMITTED)
    assert allowed_actions(Actor(OWNER_ID, 'user'), _program(Status.DRAFT)) == ['edit', 'delete', 'submit']
    assert allowed_actions(Actor(OTHER_ID, 'user'), _program(Status.DRAFT)) == []
    assert set(allowed_actions(Actor(5, 'finance_officer'), submitted)) == {
        'query', 'approve', 'reject', 'deduct_budget', 'add_remark',
    }
    assert set(allowed_actions(Actor(6, 'finance_mmk'), submitted)) == {
        'query', 'approve', 'reject', 'deduct_budget', 'add_remark', 'reverse_deduction',
    }
    assert allowed_actions(Actor(7, 'admin'), submitted) == []


def test_answer_query_not_offered_when_pending_queries_are_ambiguous():
    p = _program(Status.QUERIED)
    owner = Actor(OWNER_ID, 'user')
    assert 'answer_query' in allowed_actions(owner, p)
    p.queries.append(ProgramQuery(id='q2', query_text='again?', queried_by=9, queried_by_name='F',
                                  query_date=utcnow()))
    assert 'answer_query' not in allowed_actions(owner, p)
    assert not can_perform('user', 'answer_query', p, OWNER_ID)


def test_can_view():
    p = _program(Status.SUBMITTED)
    assert can_view(Actor(OWNER_ID, 'user'), p)
    assert not can_view(Actor(OTHER_ID, 'user'), p)
    assert can_view(Actor(5, 'finance_officer'), p)
    assert can_view(Actor(7, 'super_admin'), p)
    assert not can_view(Actor(8, 'guest'), p)
