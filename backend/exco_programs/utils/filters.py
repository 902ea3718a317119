from __future__ import annotations
from typing import Any, Dict
from flask import abort


def apply_filters(stmt, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Generic filter builder for select() statements.

    specs: { param_name: { 'op': callable(stmt, value)->stmt, 'coerce': callable, 'validate': callable } }
    Empty parameters are ignored; coerce/validate failures abort 400 naming the parameter.
    """
    for name, meta in specs.items():
        val = params.get(name)
        if val is None or val == '':
            continue
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError, LookupError):
                abort(400, description=f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            abort(400, description=f'{name} invalid')
        stmt = meta['op'](stmt, val)
    return stmt


def csv_list(value: str):
    return [v.strip() for v in str(value).split(',') if v.strip()]
