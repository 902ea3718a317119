"""Central enum definitions for roles and program actions.

Role values are persisted on ``users.role`` and travel in JWT claims; never
rename a value silently. Legacy spellings seen in older data are mapped through
``LEGACY_ROLE_ALIASES``.
"""
from __future__ import annotations
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


class Role(str, Enum):
    USER = 'user'
    FINANCE_OFFICER = 'finance_officer'
    FINANCE_MMK = 'finance_mmk'
    ADMIN = 'admin'
    SUPER_ADMIN = 'super_admin'

    def __str__(self) -> str:
        return self.value


class Action(str, Enum):
    CREATE = 'create'
    EDIT = 'edit'
    DELETE = 'delete'
    SUBMIT = 'submit'
    QUERY = 'query'
    ANSWER_QUERY = 'answer_query'
    APPROVE = 'approve'
    REJECT = 'reject'
    DEDUCT_BUDGET = 'deduct_budget'
    ACCEPT_DOCUMENT = 'accept_document'
    VIEW_ALL = 'view_all'
    VIEW_OWN = 'view_own'
    ADD_REMARK = 'add_remark'
    START_PAYMENT = 'start_payment'
    COMPLETE_PAYMENT = 'complete_payment'
    REVERSE_DEDUCTION = 'reverse_deduction'

    def __str__(self) -> str:
        return self.value

    @property
    def slug(self) -> str:
        """URL segment used by the REST layer (``answer_query`` -> ``answer-query``)."""
        return self.value.replace('_', '-')


LEGACY_ROLE_ALIASES: Dict[str, Role] = {
    'Finance MMK': Role.FINANCE_MMK,
    'finance': Role.FINANCE_OFFICER,
    'superadmin': Role.SUPER_ADMIN,
}

FINANCE_ROLES: FrozenSet[Role] = frozenset({Role.FINANCE_OFFICER, Role.FINANCE_MMK})
ADMIN_ROLES: FrozenSet[Role] = frozenset({Role.ADMIN, Role.SUPER_ADMIN})

_OWNER_GRANTS = frozenset({
    Action.CREATE, Action.EDIT, Action.DELETE, Action.SUBMIT, Action.ANSWER_QUERY, Action.VIEW_OWN,
})
_FINANCE_GRANTS = frozenset({
    Action.QUERY, Action.APPROVE, Action.REJECT, Action.DEDUCT_BUDGET, Action.ADD_REMARK, Action.VIEW_ALL,
})
# MMK is a superset of the finance reviewer
_MMK_GRANTS = _FINANCE_GRANTS | frozenset({
    Action.ACCEPT_DOCUMENT, Action.START_PAYMENT, Action.COMPLETE_PAYMENT, Action.REVERSE_DEDUCTION,
})

ROLE_GRANTS: Dict[Role, FrozenSet[Action]] = {
    Role.USER: _OWNER_GRANTS,
    Role.FINANCE_OFFICER: _FINANCE_GRANTS,
    Role.FINANCE_MMK: _MMK_GRANTS,
    Role.ADMIN: frozenset({Action.VIEW_ALL}),
    Role.SUPER_ADMIN: frozenset({Action.VIEW_ALL}),
}

# Actions that additionally require actor.id == program.user_id
OWNER_SCOPED_ACTIONS: FrozenSet[Action] = frozenset({
    Action.EDIT, Action.DELETE, Action.SUBMIT, Action.ANSWER_QUERY, Action.VIEW_OWN,
})

# Not bound to a program status
STATUS_FREE_ACTIONS: FrozenSet[Action] = frozenset({Action.CREATE, Action.VIEW_ALL, Action.VIEW_OWN})


def parse_role(value: Any) -> Optional[Role]:
    """Return the Role for ``value`` (legacy aliases included) or None."""
    if isinstance(value, Role):
        return value
    if value in LEGACY_ROLE_ALIASES:
        return LEGACY_ROLE_ALIASES[value]
    try:
        return Role(value)
    except ValueError:
        return None


def parse_action(value: Any) -> Optional[Action]:
    if isinstance(value, Action):
        return value
    try:
        return Action(str(value).replace('-', '_'))
    except ValueError:
        return None


__all__ = [
    'Role', 'Action', 'LEGACY_ROLE_ALIASES', 'FINANCE_ROLES', 'ADMIN_ROLES', 'ROLE_GRANTS',
    'OWNER_SCOPED_ACTIONS', 'STATUS_FREE_ACTIONS', 'parse_role', 'parse_action',
]
