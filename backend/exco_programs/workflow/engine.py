"""Workflow engine: the only code path that changes a program's status.

    apply_transition(program, action, actor, payload)

runs, in order: authorization (Forbidden), optimistic version check
(StaleSnapshot), payload validation (ValidationFailed), transition table lookup
(IllegalTransition). Only then is a deep copy of the snapshot mutated and
returned. A failure at any step leaves the input untouched, so there is no
partial application to undo.
"""
from __future__ import annotations
import copy
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from exco_programs.constants.roles import Action, parse_action
from exco_programs.domain import ledgers
from exco_programs.domain.errors import Forbidden, IllegalTransition, StaleSnapshot, ValidationFailed
from exco_programs.domain.program import (
    DOCUMENT_CATEGORIES,
    KIND_DEDUCTION,
    Actor,
    DocumentRef,
    Program,
    utcnow,
)
from exco_programs.domain.status import Status, parse_status
from exco_programs.services.policy import is_authorized
from exco_programs.utils.validation import (
    kpi_list,
    non_negative_amount,
    optional_text,
    require_amount,
    require_text,
    string_list,
    validate_date_range,
)
from exco_programs.workflow.transitions import TRANSITIONS, WORKFLOW

logger = logging.getLogger(__name__)

TEXT_LIMIT = 4000

EDITABLE_FIELDS = frozenset({
    'title', 'description', 'department', 'recipient_name',
    'start_date', 'end_date', 'objectives', 'kpi', 'documents',
})

_CAMEL = re.compile(r'(?<!^)(?=[A-Z])')


def _normalize(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Accept both ``voucherNumber`` and ``voucher_number`` spellings."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationFailed('payload', 'payload must be an object')
    return {_CAMEL.sub('_', k).lower(): v for k, v in payload.items()}


def _documents(value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationFailed('documents', 'documents must be a list')
    docs = []
    for raw in value:
        if not isinstance(raw, (str, dict)):
            raise ValidationFailed('documents', 'documents entries must be objects')
        try:
            doc = DocumentRef.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            raise ValidationFailed('documents', 'documents entries need a storedName') from None
        if doc.category is not None and doc.category not in DOCUMENT_CATEGORIES:
            raise ValidationFailed('documents', f"unknown document category {doc.category!r}")
        docs.append(doc)
    return docs


# ---------- payload validators ---------- #
# Each returns the cleaned values the matching mutator consumes.

def _no_payload(program: Program, data: Dict[str, Any]) -> Dict[str, Any]:
    return {}


def _validate_query(program, data):
    return {'text': require_text(data, 'query_text', TEXT_LIMIT)}


def _validate_answer(program, data):
    text = require_text(data, 'answer_text', TEXT_LIMIT)
    # several pending entries raise AmbiguousPendingQuery
    ledgers.pending_query(program)
    return {'text': text}


def _validate_approve(program, data):
    return {
        'voucher_number': require_text(data, 'voucher_number', 100),
        'eft_number': require_text(data, 'eft_number', 100),
        'letter_reference_number': optional_text(data, 'letter_reference_number', 100),
    }


def _validate_reject(program, data):
    return {'reason': require_text(data, 'rejection_reason', TEXT_LIMIT)}


def _validate_deduct(program, data):
    return {
        'amount': require_amount(data, 'amount', maximum=ledgers.remaining_budget(program)),
        'reason': require_text(data, 'reason', TEXT_LIMIT),
    }


def _validate_reverse(program, data):
    deduction_id = require_text(data, 'deduction_id')
    original = ledgers.find_deduction(program, deduction_id)
    if original is None:
        raise ValidationFailed('deduction_id', f"deduction {deduction_id} not found")
    if original.kind != KIND_DEDUCTION:
        raise ValidationFailed('deduction_id', 'only deduction entries can be reversed')
    if ledgers.is_reversed(program, deduction_id):
        raise ValidationFailed('deduction_id', f"deduction {deduction_id} is already reversed")
    return {'original': original, 'reason': require_text(data, 'reason', TEXT_LIMIT)}


def _validate_remark(program, data):
    return {'text': require_text(data, 'remark_text', TEXT_LIMIT)}


def _validate_edit(program, data):
    if 'status' in data:
        raise ValidationFailed('status', 'status can only change through workflow actions')
    if 'budget' in data:
        raise ValidationFailed('budget', 'budget is fixed at creation')
    unknown = sorted(set(data) - EDITABLE_FIELDS)
    if unknown:
        raise ValidationFailed(unknown[0], f"{unknown[0]} is not editable")
    changes: Dict[str, Any] = {}
    if 'title' in data:
        changes['title'] = require_text(data, 'title', 255)
    for name in ('description', 'department', 'recipient_name'):
        if name in data:
            changes[name] = optional_text(data, name, TEXT_LIMIT) or ''
    if 'start_date' in data or 'end_date' in data:
        start = data['start_date'] if 'start_date' in data else program.start_date
        end = data['end_date'] if 'end_date' in data else program.end_date
        changes['start_date'], changes['end_date'] = validate_date_range(start, end)
    if 'objectives' in data:
        changes['objectives'] = string_list(data['objectives'], 'objectives')
    if 'kpi' in data:
        changes['kpi'] = kpi_list(data['kpi'])
    if 'documents' in data:
        changes['documents'] = _documents(data['documents'])
    return changes


# ---------- mutators (operate on the copy) ---------- #

def _do_submit(p: Program, actor: Actor, v, now: datetime):
    p.submitted_at = now


def _do_query(p, actor, v, now):
    ledgers.append_query(p, v['text'], actor.id, actor.name, now)


def _do_answer(p, actor, v, now):
    ledgers.answer_pending_query(p, v['text'], actor.id, actor.name, now)


def _do_approve(p, actor, v, now):
    p.voucher_number = v['voucher_number']
    p.eft_number = v['eft_number']
    p.letter_reference_number = v['letter_reference_number']
    p.approved_by = actor.id
    p.approved_at = now


def _do_reject(p, actor, v, now):
    p.rejection_reason = v['reason']
    p.rejected_by = actor.id
    p.rejected_at = now


def _do_accept_document(p, actor, v, now):
    p.mmk_accepted_by = actor.id
    p.mmk_accepted_at = now


def _do_start_payment(p, actor, v, now):
    p.payment_started_at = now


def _do_complete_payment(p, actor, v, now):
    p.payment_completed_at = now


def _do_deduct(p, actor, v, now):
    ledgers.append_deduction(p, v['amount'], v['reason'], actor.id, actor.name, now)


def _do_reverse(p, actor, v, now):
    ledgers.append_reversal(p, v['original'], v['reason'], actor.id, actor.name, now)


def _do_remark(p, actor, v, now):
    ledgers.append_remark(p, v['text'], actor.id, actor.name, now)


def _do_edit(p, actor, v, now):
    for name, value in v.items():
        if name == 'documents':
            # uploads extend the history, they never replace it
            ledgers.append_documents(p, value, now)
        else:
            setattr(p, name, value)


HANDLERS: Dict[Action, tuple] = {
    Action.SUBMIT: (_no_payload, _do_submit),
    Action.QUERY: (_validate_query, _do_query),
    Action.ANSWER_QUERY: (_validate_answer, _do_answer),
    Action.APPROVE: (_validate_approve, _do_approve),
    Action.REJECT: (_validate_reject, _do_reject),
    Action.ACCEPT_DOCUMENT: (_no_payload, _do_accept_document),
    Action.START_PAYMENT: (_no_payload, _do_start_payment),
    Action.COMPLETE_PAYMENT: (_no_payload, _do_complete_payment),
    Action.DEDUCT_BUDGET: (_validate_deduct, _do_deduct),
    Action.REVERSE_DEDUCTION: (_validate_reverse, _do_reverse),
    Action.ADD_REMARK: (_validate_remark, _do_remark),
    Action.EDIT: (_validate_edit, _do_edit),
    Action.DELETE: (_no_payload, None),
}

# Required payload fields per action, used by the OpenAPI builder
PAYLOAD_FIELDS: Dict[Action, Dict[str, bool]] = {
    Action.QUERY: {'query_text': True},
    Action.ANSWER_QUERY: {'answer_text': True},
    Action.APPROVE: {'voucher_number': True, 'eft_number': True, 'letter_reference_number': False},
    Action.REJECT: {'rejection_reason': True},
    Action.DEDUCT_BUDGET: {'amount': True, 'reason': True},
    Action.REVERSE_DEDUCTION: {'deduction_id': True, 'reason': True},
    Action.ADD_REMARK: {'remark_text': True},
}


def _next_timestamp(program: Program, now: Optional[datetime]) -> datetime:
    # version is derived from updated_at, so it must strictly advance
    now = now or utcnow()
    if program.updated_at is not None and now <= program.updated_at:
        now = program.updated_at + timedelta(microseconds=1)
    return now


def apply_transition(program: Program, action: Any, actor: Actor, payload: Optional[Dict[str, Any]] = None,
                     *, expected_version: Optional[str] = None, now: Optional[datetime] = None) -> Program:
    """Validate and apply ``action`` by ``actor`` to ``program``.

    Returns a new snapshot; ``program`` itself is never modified. ``delete``
    returns an unchanged copy and leaves physical removal to the caller.
    """
    act = parse_action(action)
    if not is_authorized(actor.role, act, program, actor.id):
        logger.debug('Denied %s on program %s for role %s', action, program.id, actor.role)
        raise Forbidden(str(action), str(actor.role), program.id)
    if expected_version is not None and expected_version != program.version:
        raise StaleSnapshot(expected_version, program.version)
    current = parse_status(program.status)
    if act not in HANDLERS:
        raise IllegalTransition(act.value, current.value, 'not a workflow action')
    validate, mutate = HANDLERS[act]
    values = validate(program, _normalize(payload))
    target = WORKFLOW.assert_can_transition(act, program)

    updated = copy.deepcopy(program)
    if mutate is None:
        return updated
    stamp = _next_timestamp(program, now)
    mutate(updated, actor, values, stamp)
    updated.status = parse_status(target)
    updated.updated_at = stamp
    logger.info(
        'Program %s: %s by user %s (%s) %s -> %s',
        program.id, act.value, actor.id, actor.role, current.value, updated.status.value,
    )
    return updated


def create_program(actor: Actor, payload: Optional[Dict[str, Any]], now: Optional[datetime] = None) -> Program:
    """Build a new draft owned by ``actor``. The store assigns the id."""
    if not is_authorized(actor.role, Action.CREATE, None, actor.id):
        raise Forbidden(Action.CREATE.value, str(actor.role))
    data = _normalize(payload)
    if 'status' in data:
        raise ValidationFailed('status', 'new programs always start as draft')
    if 'budget' not in data:
        raise ValidationFailed('budget', 'budget is required')
    start, end = validate_date_range(data.get('start_date'), data.get('end_date'))
    now = now or utcnow()
    program = Program(
        id=None,
        title=require_text(data, 'title', 255),
        budget=non_negative_amount(data['budget'], 'budget'),
        user_id=actor.id,
        submitted_by=actor.name,
        status=Status.DRAFT,
        description=optional_text(data, 'description', TEXT_LIMIT) or '',
        department=optional_text(data, 'department', 255) or '',
        recipient_name=optional_text(data, 'recipient_name', 255) or '',
        start_date=start,
        end_date=end,
        objectives=string_list(data.get('objectives'), 'objectives'),
        kpi=kpi_list(data.get('kpi')),
        created_at=now,
        updated_at=now,
    )
    ledgers.append_documents(program, _documents(data.get('documents')), now)
    logger.info('Program created by user %s: %s', actor.id, program.title)
    return program


def transition_targets() -> Dict[str, Dict[str, Any]]:
    """Action -> (sources, target) view of the table for documentation."""
    return {
        a.value: {
            'from': sorted(s.value for s in spec.sources),
            'to': spec.target.value if spec.target is not None else None,
        }
        for a, spec in TRANSITIONS.items()
    }


__all__ = ['apply_transition', 'create_program', 'TRANSITIONS', 'PAYLOAD_FIELDS', 'EDITABLE_FIELDS',
           'transition_targets']
