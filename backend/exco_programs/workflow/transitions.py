"""The program workflow: action x current status -> next status.

This table is the only place status edges are defined. The engine, the policy
matrix and the OpenAPI ``x-transitions`` annotations all read from it.
"""
from __future__ import annotations
from exco_programs.constants.roles import Action
from exco_programs.domain.ledgers import pending_queries
from exco_programs.domain.status import NON_TERMINAL_STATUSES, Status
from exco_programs.utils.fsm import Transition, TransitionValidator

_IN_REVIEW = {Status.SUBMITTED, Status.ANSWERED_QUERY}


def _has_pending_query(program) -> bool:
    # two or more pending is ambiguous and answer_query fails closed
    return len(pending_queries(program)) == 1


TRANSITIONS = {
    Action.SUBMIT: Transition({Status.DRAFT}, Status.SUBMITTED),
    Action.QUERY: Transition(_IN_REVIEW, Status.QUERIED),
    Action.ANSWER_QUERY: Transition(
        {Status.QUERIED}, Status.ANSWERED_QUERY,
        guard=_has_pending_query, guard_reason='no pending query to answer',
    ),
    Action.APPROVE: Transition(_IN_REVIEW, Status.APPROVED),
    Action.REJECT: Transition({Status.SUBMITTED, Status.QUERIED, Status.ANSWERED_QUERY}, Status.REJECTED),
    Action.ACCEPT_DOCUMENT: Transition({Status.APPROVED}, Status.MMK_ACCEPTED),
    Action.START_PAYMENT: Transition({Status.MMK_ACCEPTED}, Status.PAYMENT_IN_PROGRESS),
    Action.COMPLETE_PAYMENT: Transition({Status.PAYMENT_IN_PROGRESS}, Status.PAYMENT_COMPLETED),
    # ledger-only actions keep the status
    Action.DEDUCT_BUDGET: Transition(NON_TERMINAL_STATUSES),
    Action.REVERSE_DEDUCTION: Transition(NON_TERMINAL_STATUSES),
    Action.ADD_REMARK: Transition(NON_TERMINAL_STATUSES - {Status.DRAFT}),
    Action.EDIT: Transition({Status.DRAFT, Status.QUERIED}),
    Action.DELETE: Transition({Status.DRAFT}),
}

WORKFLOW = TransitionValidator(TRANSITIONS)

__all__ = ['TRANSITIONS', 'WORKFLOW']
