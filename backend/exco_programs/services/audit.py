from __future__ import annotations
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt_identity, get_jwt
from exco_programs import get_db
from exco_programs.models.audit import AuditLog


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None,
              meta: Optional[Dict[str, Any]] = None, actor=None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. PROGRAM.APPROVE, PROGRAM.DEDUCT_BUDGET, USER.CREATE
      entity: optional entity name (Program, User)
      entity_id: optional primary key
      meta: additional JSON-safe dictionary (shallow copied)
      actor: optional Actor; defaults to the identity of the current JWT
    """
    session = get_db()
    actor_id = getattr(actor, 'id', None)
    role = getattr(actor, 'role', None)
    if actor is None:
        try:
            ident = get_jwt_identity()
            actor_id = int(ident) if ident is not None else None
            role = (get_jwt() or {}).get('role')
        except RuntimeError:
            # outside a verified request (scripts, direct service calls)
            actor_id, role = None, None
    log = AuditLog(
        actor_user_id=actor_id or 0,
        actor_role=role,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
