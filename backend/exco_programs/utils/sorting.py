from __future__ import annotations
from flask import abort


def apply_multi_sort(stmt, sort_expr: str | None, allowed: dict, tie_breaker, default=None):
    """Apply a multi-field sort such as ``-updated_at,title``.

    allowed maps public field keys to columns; tie_breaker is always appended
    so paging is deterministic.
    """
    if not sort_expr:
        return stmt.order_by(*(default or []), tie_breaker.asc())
    clauses = []
    for raw in sort_expr.split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token[1:] if desc else token
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(tie_breaker.asc())
    return stmt.order_by(*clauses)
