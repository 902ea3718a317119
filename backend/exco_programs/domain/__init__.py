"""Pure workflow domain: status model, program snapshot, ledgers and errors."""
from .errors import (  # noqa: F401
    AmbiguousPendingQuery,
    Forbidden,
    IllegalTransition,
    StaleSnapshot,
    UnknownStatus,
    ValidationFailed,
    WorkflowError,
)
from .program import Actor, BudgetDeduction, DocumentRef, Program, ProgramQuery, Remark  # noqa: F401
from .status import Status, parse_status, precedes, timeline  # noqa: F401
