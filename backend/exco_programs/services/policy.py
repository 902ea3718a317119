"""Role-permission matrix lookups.

``is_authorized`` answers "may this role do this to this program at all"
(grant plus ownership). ``can_perform`` additionally requires the action to be
legal from the program's current status, which makes it the complete closed
table: anything not granted is denied.
"""
from __future__ import annotations
from typing import Any, List, Optional

from flask_jwt_extended import get_jwt, get_jwt_identity

from exco_programs.constants.roles import (
    OWNER_SCOPED_ACTIONS,
    ROLE_GRANTS,
    STATUS_FREE_ACTIONS,
    Action,
    Role,
    parse_action,
    parse_role,
)
from exco_programs.domain.errors import UnknownStatus
from exco_programs.domain.program import Actor
from exco_programs.domain.status import parse_status
from exco_programs.workflow.transitions import WORKFLOW


def is_authorized(role: Any, action: Any, program=None, actor_id: Optional[int] = None) -> bool:
    role, action = parse_role(role), parse_action(action)
    if role is None or action is None:
        return False
    if action not in ROLE_GRANTS.get(role, frozenset()):
        return False
    if action in OWNER_SCOPED_ACTIONS:
        return program is not None and actor_id is not None and program.user_id == actor_id
    return True


def can_perform(role: Any, action: Any, program=None, actor_id: Optional[int] = None) -> bool:
    if not is_authorized(role, action, program, actor_id):
        return False
    action = parse_action(action)
    if action in STATUS_FREE_ACTIONS:
        return True
    if program is None:
        return False
    try:
        parse_status(program.status)
    except UnknownStatus:
        return False
    return WORKFLOW.is_allowed(action, program)


def allowed_actions(actor: Actor, program) -> List[str]:
    """Status-bound actions ``actor`` could apply to ``program`` right now."""
    return [
        a.value for a in Action
        if a not in STATUS_FREE_ACTIONS and can_perform(actor.role, a, program, actor.id)
    ]


def can_view(actor: Actor, program) -> bool:
    return (
        can_perform(actor.role, Action.VIEW_ALL, program, actor.id)
        or can_perform(actor.role, Action.VIEW_OWN, program, actor.id)
    )


def current_actor() -> Actor:
    """Build the Actor for the verified JWT of the current request."""
    claims = get_jwt()
    role = parse_role(claims.get('role'))
    return Actor(
        id=int(get_jwt_identity()),
        role=role.value if role else str(claims.get('role')),
        name=claims.get('name'),
    )


def current_role() -> Optional[Role]:
    return parse_role(get_jwt().get('role'))
