"""Best-effort notifications fired after a transition has been committed.

Listeners are plain callables taking a ProgramEvent. A failing listener is
logged and skipped; it can never undo the transition that triggered it.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy import select

from exco_programs import get_db
from exco_programs.constants.roles import FINANCE_ROLES, Action
from exco_programs.domain.program import Actor, Program
from exco_programs.models.notification import Notification
from exco_programs.models.user import User

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'exco_notifications'


@dataclass(frozen=True)
class ProgramEvent:
    action: str
    program: Program
    actor: Actor
    previous_status: Optional[str] = None


Listener = Callable[[ProgramEvent], None]

# action -> (type, title, message)
MESSAGES: Dict[str, Tuple[str, str, str]] = {
    Action.SUBMIT.value: ('info', 'New Program Submitted', 'A program has been submitted and is waiting for review.'),
    Action.QUERY.value: ('warning', 'Program Query',
                         'Your program has been queried by finance. Please check and respond.'),
    Action.ANSWER_QUERY.value: ('info', 'Query Answered', 'A program query has been answered. Please review.'),
    Action.APPROVE.value: ('success', 'Program Approved', 'Your program has been approved by finance.'),
    Action.REJECT.value: ('error', 'Program Rejected', 'Your program has been rejected by finance.'),
    Action.ACCEPT_DOCUMENT.value: ('success', 'Document Accepted',
                                   'Your program document has been accepted by the MMK office.'),
    Action.START_PAYMENT.value: ('info', 'Payment in Progress', 'Payment for your program has started.'),
    Action.COMPLETE_PAYMENT.value: ('success', 'Payment Completed', 'Payment for your program has been completed.'),
    Action.DEDUCT_BUDGET.value: ('warning', 'Budget Deducted', 'Budget has been deducted from your program.'),
    Action.REVERSE_DEDUCTION.value: ('info', 'Deduction Reversed', 'A budget deduction on your program was reversed.'),
    Action.ADD_REMARK.value: ('info', 'New Remark', 'Finance added a remark to your program.'),
}


class NotificationDispatcher:
    def __init__(self, listeners: Optional[List[Listener]] = None):
        self.listeners: List[Listener] = list(listeners or [])

    def subscribe(self, listener: Listener) -> Listener:
        self.listeners.append(listener)
        return listener

    def dispatch(self, event: ProgramEvent) -> int:
        """Call every listener; return how many succeeded."""
        delivered = 0
        for listener in self.listeners:
            try:
                listener(event)
                delivered += 1
            except Exception:
                logger.exception(
                    'Notification listener %s failed for program %s (%s)',
                    getattr(listener, '__name__', listener), event.program.id, event.action,
                )
        return delivered


def recipients_for(event: ProgramEvent, session) -> List[int]:
    program = event.program
    if event.action == Action.SUBMIT.value:
        stmt = select(User.id).where(User.role.in_([r.value for r in FINANCE_ROLES]), User.is_active.is_(True))
        return list(session.execute(stmt).scalars())
    if event.action == Action.ANSWER_QUERY.value:
        answered = [q for q in program.queries if q.answered_at is not None]
        if answered:
            latest = max(answered, key=lambda q: q.answered_at)
            return [latest.queried_by] if latest.queried_by is not None else []
        return []
    return [program.user_id]


def persist_notifications(event: ProgramEvent) -> None:
    """Default listener: one Notification row per recipient, committed on its own."""
    template = MESSAGES.get(event.action)
    if template is None:
        return
    kind, title, message = template
    session = get_db()
    try:
        for user_id in recipients_for(event, session):
            if user_id == event.actor.id:
                continue
            session.add(Notification(
                user_id=user_id,
                program_id=event.program.id,
                event=event.action,
                type=kind,
                title=title,
                message=f"{message} ({event.program.title})",
            ))
        session.commit()
    except Exception:
        session.rollback()
        raise


def init_notifications(app) -> NotificationDispatcher:
    listeners = [persist_notifications] if app.config.get('NOTIFICATIONS_ENABLED', True) else []
    dispatcher = NotificationDispatcher(listeners)
    app.extensions[EXTENSION_KEY] = dispatcher
    return dispatcher


def get_dispatcher() -> NotificationDispatcher:
    return current_app.extensions[EXTENSION_KEY]


def notify(action: str, program: Program, actor: Actor, previous_status: Optional[str] = None) -> int:
    return get_dispatcher().dispatch(ProgramEvent(action, program, actor, previous_status))
