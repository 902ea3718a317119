"""Reusable payload validation helpers.

Every failure raises ValidationFailed naming the offending field so callers can
highlight it.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, List, Optional

from exco_programs.domain.errors import ValidationFailed
from exco_programs.domain.program import parse_date, to_decimal


def require_text(payload: Dict[str, Any], field: str, max_length: Optional[int] = None) -> str:
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(field, f"{field} is required")
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationFailed(field, f"{field} must be at most {max_length} characters")
    return value


def optional_text(payload: Dict[str, Any], field: str, max_length: Optional[int] = None) -> Optional[str]:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, str):
        raise ValidationFailed(field, f"{field} must be a string")
    return require_text(payload, field, max_length)


def require_amount(payload: Dict[str, Any], field: str = 'amount', maximum: Optional[Decimal] = None) -> Decimal:
    """Positive decimal not above ``maximum``."""
    amount = to_decimal(payload.get(field), field)
    if amount <= 0:
        raise ValidationFailed(field, f"{field} must be greater than zero")
    if maximum is not None and amount > maximum:
        raise ValidationFailed(field, f"{field} exceeds remaining budget ({maximum})")
    return amount


def non_negative_amount(value: Any, field: str) -> Decimal:
    amount = to_decimal(value, field)
    if amount < 0:
        raise ValidationFailed(field, f"{field} must not be negative")
    return amount


def validate_date_range(start, end, start_field: str = 'start_date', end_field: str = 'end_date'):
    start_d = parse_date(start, start_field)
    end_d = parse_date(end, end_field)
    if start_d and end_d and end_d < start_d:
        raise ValidationFailed(end_field, f"{end_field} must not be before {start_field}")
    return start_d, end_d


def string_list(value: Any, field: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationFailed(field, f"{field} must be a list of strings")
    return [v for v in value]


def kpi_list(value: Any, field: str = 'kpi') -> List[Any]:
    """Strings or ``{"target", "current"}`` pairs."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationFailed(field, f"{field} must be a list")
    for item in value:
        if isinstance(item, str):
            continue
        if isinstance(item, dict) and set(item.keys()) <= {'target', 'current'} and 'target' in item:
            continue
        raise ValidationFailed(field, f"{field} entries must be text or {{target, current}} pairs")
    return list(value)


__all__ = [
    'require_text', 'optional_text', 'require_amount', 'non_negative_amount',
    'validate_date_range', 'string_list', 'kpi_list',
]
