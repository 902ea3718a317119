"""List and single-resource response helpers: pagination, ETags, conditional GET.

List ETags hash the returned ids, the paging window and the newest
``updated_at`` in the page. Single programs use their version token as a
strong ETag so the same value can be sent back in ``If-Match``.
"""
from __future__ import annotations
import hashlib
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Iterable, Optional, Tuple

from flask import abort, current_app, make_response, request
from sqlalchemy import func, select

from exco_programs.config.settings import normalize_pagination


def canonicalize_timestamp(dt: datetime) -> datetime:
    """UTC tz-aware timestamp truncated to whole seconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)


def _http_date(dt: datetime) -> str:
    return format_datetime(canonicalize_timestamp(dt), usegmt=True)


def pagination_params() -> Tuple[int, int]:
    try:
        return normalize_pagination(
            request.args.get('limit'),
            request.args.get('offset'),
            current_app.config.get('PAGE_DEFAULT_LIMIT', 50),
            current_app.config.get('PAGE_MAX_LIMIT', 200),
        )
    except ValueError as e:
        abort(400, description=str(e))


def apply_pagination(session, stmt, limit: int, offset: int):
    """Return (rows, total) for a 2.0-style select."""
    total = session.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    rows = session.execute(stmt.offset(offset).limit(limit)).scalars().all()
    return rows, total


def compute_etag(ids: Iterable, total: int, limit: int, offset: int, latest_ts: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows),
        },
    }


def make_cached_list_response(rows: list, total: int, limit: int, offset: int,
                              latest_ts: Optional[datetime] = None):
    ids = [r.get('id') for r in rows]
    latest_iso = canonicalize_timestamp(latest_ts).isoformat().replace('+00:00', 'Z') if latest_ts else ''
    etag = compute_etag(ids, total, limit, offset, latest_iso)
    resp = make_response(build_list_payload(rows, total, limit, offset))
    resp.headers['ETag'] = f'"{etag}"'
    if latest_ts:
        resp.headers['Last-Modified'] = _http_date(latest_ts)
    return resp, etag


def _etag_matches(header_val: Optional[str], etag_value: str) -> bool:
    if not header_val:
        return False
    candidates = [c.strip() for c in header_val.split(',')]
    return '*' in candidates or any(c.removeprefix('W/').strip('"') == etag_value for c in candidates)


def handle_conditional(etag_value: str, latest_ts: Optional[datetime] = None):
    """Return a 304 response when If-None-Match matches, else None."""
    if _etag_matches(request.headers.get('If-None-Match'), etag_value):
        resp = make_response('', 304)
        resp.headers['ETag'] = f'"{etag_value}"'
        if latest_ts:
            resp.headers['Last-Modified'] = _http_date(latest_ts)
        return resp
    return None


def resource_response(payload: dict, version: str, status: int = 200):
    """JSON response carrying the program version as its ETag."""
    resp = make_response(payload, status)
    if version:
        resp.headers['ETag'] = f'"{version}"'
    return resp


def if_match_version() -> Optional[str]:
    """Version the client last saw, from If-Match (or ``expected_version`` in the body).

    ``If-Match: *`` matches any current version, so it imposes no check.
    """
    raw = request.headers.get('If-Match')
    if raw:
        raw = raw.strip()
        if raw == '*':
            return None
        return raw.removeprefix('W/').strip('"')
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        return body.get('expected_version') or body.get('expectedVersion')
    return None
