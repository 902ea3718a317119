"""Audit logging decorator for route handlers that return a JSON object.

Usage:

@audit_log('USER.CREATE', entity='User', entity_id_key='id', meta_keys=['email', 'role'])
def create_user():
    ... return {'id': user.id, 'email': user.email, 'role': user.role}, 201

@audit_log('PROGRAM.EDIT', entity='Program', entity_id_arg='program_id',
           diff_keys=['title', 'department'], pre_fetch=lambda a, kw: _load(kw['program_id']))
def edit_program(program_id): ...

Parameters:
  action: audit action code
  entity: optional entity label
  entity_id_key: key in the returned JSON whose value becomes entity_id
  entity_id_arg: path parameter used for entity_id when the key is absent
  meta_keys: keys projected from the returned JSON into meta
  diff_keys / pre_fetch: record before/after values of the listed keys in meta['changes']

Only successful (2xx) responses are audited. The entry is committed with the
handler's own transaction.
"""
from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from exco_programs import get_db
from exco_programs.services.audit import add_audit


def _extract_payload(rv: Any):
    """Return (data, status) for the common Flask return shapes."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, getattr(rv, 'status_code', 200)


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if not 200 <= status < 300:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = data.get(entity_id_key) if entity_id_key else None
            if entity_id is None and entity_id_arg:
                entity_id = kwargs.get(entity_id_arg)
            meta = {k: data.get(k) for k in (meta_keys or []) if k in data}
            if diff_keys and isinstance(before, dict):
                changes = {
                    k: {'before': before.get(k), 'after': data.get(k)}
                    for k in diff_keys
                    if k in before and k in data and before.get(k) != data.get(k)
                }
                if changes:
                    meta['changes'] = changes
            add_audit(action, entity, entity_id, meta)
            get_db().commit()
            return rv
        return wrapper
    return outer
