from __future__ import annotations
from flask import Blueprint, request, abort
from flask_jwt_extended import jwt_required
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from exco_programs import get_db
from exco_programs.constants.roles import Action
from exco_programs.domain import ledgers
from exco_programs.domain.errors import Forbidden
from exco_programs.domain.program import DOCUMENT_CATEGORIES, QUERY_ANSWERED, QUERY_PENDING
from exco_programs.domain.status import Status
from exco_programs.models.program import ProgramQueryRecord, ProgramRecord
from exco_programs.services.audit import add_audit
from exco_programs.services.notifications import notify
from exco_programs.services.policy import allowed_actions, can_perform, can_view, current_actor
from exco_programs.services.program_store import ProgramStore, query_from_row, to_snapshot
from exco_programs.services.stats import dashboard_stats
from exco_programs.status_display import all_status_meta, finance_fields_display, status_meta, timeline_display
from exco_programs.utils.filters import apply_filters, csv_list
from exco_programs.utils.listing import (
    apply_pagination,
    handle_conditional,
    if_match_version,
    make_cached_list_response,
    pagination_params,
    resource_response,
)
from exco_programs.utils.sorting import apply_multi_sort
from exco_programs.workflow.engine import apply_transition, create_program

programs_bp = Blueprint('programs', __name__)

# body keys consumed by the route rather than the engine
_CONTROL_KEYS = ('expected_version', 'expectedVersion')

SORT_FIELDS = {
    'title': ProgramRecord.title,
    'budget': ProgramRecord.budget,
    'status': ProgramRecord.status,
    'department': ProgramRecord.department,
    'start_date': ProgramRecord.start_date,
    'created_at': ProgramRecord.created_at,
    'updated_at': ProgramRecord.updated_at,
    'id': ProgramRecord.id,
}


def _program_json(program, actor, detail: bool = False):
    data = program.to_dict()
    data['version'] = program.version
    data['statusDisplay'] = status_meta(program.status)
    if detail:
        data['allowedActions'] = allowed_actions(actor, program)
        data['financeFields'] = finance_fields_display(program)
        data['budgetSummary'] = ledgers.budget_summary(program)
        data['currentDocuments'] = [d.to_dict() for d in ledgers.current_documents(program)]
        data['pendingQuery'] = next((q.to_dict() for q in program.queries if q.is_pending), None)
    return data


def _payload():
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        abort(400, description='JSON object body required')
    return {k: v for k, v in body.items() if k not in _CONTROL_KEYS}


def _load_visible(program_id: int, actor, lock: bool = False):
    program = ProgramStore().load(program_id, lock=lock)
    if program is None:
        abort(404)
    if not can_view(actor, program):
        raise Forbidden('view', actor.role, program_id)
    return program


def _audit_meta(action: Action, before, after):
    meta = {'from': before.status.value, 'to': after.status.value}
    if action is Action.QUERY:
        meta['query_id'] = after.queries[-1].id
    elif action in (Action.DEDUCT_BUDGET, Action.REVERSE_DEDUCTION):
        entry = after.budget_deductions[-1]
        meta.update({'entry_id': entry.id, 'amount': str(entry.deduction_amount), 'kind': entry.kind})
    elif action is Action.ADD_REMARK:
        meta['remark_id'] = after.remarks[-1].id
    elif action is Action.APPROVE:
        meta['voucher_number'] = after.voucher_number
    return meta


def _transition(program_id: int, action: Action):
    """Load, apply, save, audit, commit, then notify."""
    actor = current_actor()
    store = ProgramStore()
    program = store.load(program_id)
    if program is None:
        abort(404)
    updated = apply_transition(program, action, actor, _payload(), expected_version=if_match_version())
    saved = store.save(updated, program.version)
    add_audit(f'PROGRAM.{action.value.upper()}', 'Program', program_id,
              _audit_meta(action, program, saved), actor=actor)
    get_db().commit()
    notify(action.value, saved, actor, program.status.value)
    return resource_response(_program_json(saved, actor, detail=True), saved.version)


# --- Reference data ---

@programs_bp.get('/statuses')
@jwt_required()
def list_statuses():
    return {'data': all_status_meta()}


@programs_bp.get('/stats')
@jwt_required()
def program_stats():
    actor = current_actor()
    if can_perform(actor.role, Action.VIEW_ALL, None, actor.id):
        return dashboard_stats()
    if can_perform(actor.role, Action.CREATE, None, actor.id):
        return dashboard_stats(owner_id=actor.id)
    raise Forbidden('view', actor.role)


@programs_bp.get('/queries')
@jwt_required()
def list_queries():
    """Query inbox across programs: finance-wide for finance/admin, own programs for EXCO users."""
    actor = current_actor()
    session = get_db()
    stmt = (
        select(ProgramQueryRecord)
        .join(ProgramQueryRecord.program)
        .options(selectinload(ProgramQueryRecord.program))
    )
    if not can_perform(actor.role, Action.VIEW_ALL, None, actor.id):
        stmt = stmt.where(ProgramRecord.user_id == actor.id)
    stmt = apply_filters(stmt, {
        'status': {
            'validate': lambda v: v in (QUERY_PENDING, QUERY_ANSWERED),
            'op': lambda s, v: s.where(ProgramQueryRecord.status == v),
        },
        'program_id': {'coerce': int, 'op': lambda s, v: s.where(ProgramQueryRecord.program_id == v)},
    }, request.args)
    stmt = stmt.order_by(ProgramQueryRecord.query_date.desc(), ProgramQueryRecord.id.asc())
    limit, offset = pagination_params()
    rows, total = apply_pagination(session, stmt, limit, offset)
    data = [
        {
            **query_from_row(q).to_dict(),
            'programId': q.program_id,
            'programTitle': q.program.title,
            'programStatus': q.program.status,
        }
        for q in rows
    ]
    latest_ts = max((q.program.updated_at for q in rows), default=None)
    resp, etag = make_cached_list_response(data, total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


# --- Collection ---

@programs_bp.get('')
@jwt_required()
def list_programs():
    actor = current_actor()
    session = get_db()
    stmt = select(ProgramRecord).options(
        selectinload(ProgramRecord.queries),
        selectinload(ProgramRecord.deductions),
        selectinload(ProgramRecord.remarks),
    )
    if not can_perform(actor.role, Action.VIEW_ALL, None, actor.id):
        # owners only ever see their own programs
        stmt = stmt.where(ProgramRecord.user_id == actor.id)
    filter_specs = {
        'status': {
            'coerce': lambda v: [Status(s).value for s in csv_list(v)],
            'op': lambda s, v: s.where(ProgramRecord.status.in_(v)),
        },
        'department': {'op': lambda s, v: s.where(ProgramRecord.department == v)},
        'q': {'op': lambda s, v: s.where(ProgramRecord.title.ilike(f'%{v}%'))},
        'user_id': {'coerce': int, 'op': lambda s, v: s.where(ProgramRecord.user_id == v)},
    }
    stmt = apply_filters(stmt, filter_specs, request.args)
    stmt = apply_multi_sort(stmt, request.args.get('sort'), SORT_FIELDS, ProgramRecord.id,
                            default=[ProgramRecord.updated_at.desc()])
    limit, offset = pagination_params()
    rows, total = apply_pagination(session, stmt, limit, offset)
    data = [_program_json(to_snapshot(r), actor) for r in rows]
    latest_ts = max((r.updated_at for r in rows), default=None)
    resp, etag = make_cached_list_response(data, total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


@programs_bp.post('')
@jwt_required()
def create_program_route():
    actor = current_actor()
    program = create_program(actor, _payload())
    saved = ProgramStore().add(program)
    add_audit('PROGRAM.CREATE', 'Program', saved.id, {'title': saved.title, 'budget': str(saved.budget)},
              actor=actor)
    get_db().commit()
    return resource_response(_program_json(saved, actor, detail=True), saved.version, 201)


# --- Single program ---

@programs_bp.get('/<int:program_id>')
@jwt_required()
def get_program(program_id: int):
    actor = current_actor()
    program = _load_visible(program_id, actor)
    cond = handle_conditional(program.version, program.updated_at)
    if cond:
        return cond
    return resource_response(_program_json(program, actor, detail=True), program.version)


@programs_bp.patch('/<int:program_id>')
@jwt_required()
def edit_program(program_id: int):
    return _transition(program_id, Action.EDIT)


@programs_bp.delete('/<int:program_id>')
@jwt_required()
def delete_program(program_id: int):
    actor = current_actor()
    store = ProgramStore()
    program = store.load(program_id)
    if program is None:
        abort(404)
    apply_transition(program, Action.DELETE, actor, expected_version=if_match_version())
    store.delete(program, program.version)
    add_audit('PROGRAM.DELETE', 'Program', program_id, {'title': program.title}, actor=actor)
    get_db().commit()
    return '', 204


@programs_bp.get('/<int:program_id>/timeline')
@jwt_required()
def program_timeline(program_id: int):
    actor = current_actor()
    program = _load_visible(program_id, actor)
    return timeline_display(program)


@programs_bp.get('/<int:program_id>/budget')
@jwt_required()
def program_budget(program_id: int):
    actor = current_actor()
    program = _load_visible(program_id, actor)
    return {
        **ledgers.budget_summary(program),
        'deductions': [d.to_dict() for d in program.budget_deductions],
    }


@programs_bp.get('/<int:program_id>/documents/history')
@jwt_required()
def program_document_history(program_id: int):
    actor = current_actor()
    program = _load_visible(program_id, actor)
    category = request.args.get('category') or None
    if category is not None and category not in DOCUMENT_CATEGORIES:
        abort(400, description='category invalid')
    history = ledgers.document_history(program, category)
    return {
        'category': category,
        'data': [d.to_dict() for d in history],
        'current': [d.to_dict() for d in ledgers.current_documents(program)
                    if category is None or d.category == category],
    }


# --- Workflow actions ---

@programs_bp.post('/<int:program_id>/submit')
@jwt_required()
def submit_program(program_id: int):
    return _transition(program_id, Action.SUBMIT)


@programs_bp.post('/<int:program_id>/query')
@jwt_required()
def query_program(program_id: int):
    return _transition(program_id, Action.QUERY)


@programs_bp.post('/<int:program_id>/answer-query')
@jwt_required()
def answer_query(program_id: int):
    return _transition(program_id, Action.ANSWER_QUERY)


@programs_bp.post('/<int:program_id>/approve')
@jwt_required()
def approve_program(program_id: int):
    return _transition(program_id, Action.APPROVE)


@programs_bp.post('/<int:program_id>/reject')
@jwt_required()
def reject_program(program_id: int):
    return _transition(program_id, Action.REJECT)


@programs_bp.post('/<int:program_id>/accept-document')
@jwt_required()
def accept_document(program_id: int):
    return _transition(program_id, Action.ACCEPT_DOCUMENT)


@programs_bp.post('/<int:program_id>/start-payment')
@jwt_required()
def start_payment(program_id: int):
    return _transition(program_id, Action.START_PAYMENT)


@programs_bp.post('/<int:program_id>/complete-payment')
@jwt_required()
def complete_payment(program_id: int):
    return _transition(program_id, Action.COMPLETE_PAYMENT)


@programs_bp.post('/<int:program_id>/deduct-budget')
@jwt_required()
def deduct_budget(program_id: int):
    return _transition(program_id, Action.DEDUCT_BUDGET)


@programs_bp.post('/<int:program_id>/reverse-deduction')
@jwt_required()
def reverse_deduction(program_id: int):
    return _transition(program_id, Action.REVERSE_DEDUCTION)


@programs_bp.post('/<int:program_id>/remarks')
@jwt_required()
def add_remark(program_id: int):
    return _transition(program_id, Action.ADD_REMARK)
