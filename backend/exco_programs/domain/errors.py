"""
Workflow error taxonomy.

Every failure the workflow core can produce is one of the classes below, so
callers catch by type and the REST layer renders permission, state, validation
and conflict problems distinctly.

    WorkflowError (base)
    |
    +-- Forbidden               actor lacks permission            (403)
    +-- IllegalTransition       action not valid from status      (409)
    +-- ValidationFailed        payload missing / out of range    (400)
    +-- AmbiguousPendingQuery   more than one pending query       (409)
    +-- StaleSnapshot           concurrent modification           (412)
    +-- UnknownStatus           malformed persisted status        (422)

Usage:
    from exco_programs.domain.errors import ValidationFailed

    raise ValidationFailed("voucher_number", "voucher_number is required")
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base class. ``code`` is machine-readable and stable across releases."""

    code = 'WORKFLOW_ERROR'
    http_status = 400
    title = 'Workflow Error'

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            'status': self.http_status,
            'title': self.title,
            'detail': self.message,
            'code': self.code,
        }
        if self.field:
            body['field'] = self.field
        return body


class Forbidden(WorkflowError):
    code = 'FORBIDDEN'
    http_status = 403
    title = 'Forbidden'

    def __init__(self, action: str, role: str, program_id: Any = None) -> None:
        self.action = action
        self.role = role
        self.program_id = program_id
        super().__init__(f"You are not allowed to do this ({role} cannot {action})")


class IllegalTransition(WorkflowError):
    code = 'ILLEGAL_TRANSITION'
    http_status = 409
    title = 'Illegal Transition'

    def __init__(self, action: str, current: str, reason: Optional[str] = None) -> None:
        self.action = action
        self.current_status = current
        msg = f"This program is not in a state that allows this action ({action} from {current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ValidationFailed(WorkflowError):
    code = 'VALIDATION_FAILED'
    http_status = 400
    title = 'Validation Failed'

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"{field} is invalid", field=field)


class AmbiguousPendingQuery(WorkflowError):
    code = 'AMBIGUOUS_PENDING_QUERY'
    http_status = 409
    title = 'Ambiguous Pending Query'

    def __init__(self, program_id: Any, pending_ids: list) -> None:
        self.program_id = program_id
        self.pending_ids = list(pending_ids)
        super().__init__(
            f"Program {program_id} has {len(self.pending_ids)} pending queries; expected at most one"
        )


class StaleSnapshot(WorkflowError):
    code = 'STALE_SNAPSHOT'
    http_status = 412
    title = 'Stale Snapshot'

    def __init__(self, expected: Optional[str], actual: Optional[str]) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Program was modified concurrently (expected version {expected}, found {actual})"
        )


class UnknownStatus(WorkflowError):
    code = 'UNKNOWN_STATUS'
    http_status = 422
    title = 'Unknown Status'

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Unknown program status {value!r}", field='status')


__all__ = [
    'WorkflowError',
    'Forbidden',
    'IllegalTransition',
    'ValidationFailed',
    'AmbiguousPendingQuery',
    'StaleSnapshot',
    'UnknownStatus',
]
