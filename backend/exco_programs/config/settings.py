"""Environment-backed settings with development defaults.

``.env`` is loaded by the app factory via python-dotenv; everything here reads
``os.getenv`` at call time so tests can override through ``create_app(config)``.
"""
import os
from datetime import timedelta

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def load_settings() -> dict:
    return {
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'JWT_ACCESS_TOKEN_EXPIRES': timedelta(minutes=int(os.getenv('JWT_ACCESS_TOKEN_MINUTES', '60'))),
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///exco_programs.db'),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO').upper(),
        'LOG_FORMAT': os.getenv('LOG_FORMAT', 'readable'),
        'NOTIFICATIONS_ENABLED': _flag('NOTIFICATIONS_ENABLED', 'true'),
        'PAGE_DEFAULT_LIMIT': int(os.getenv('PAGE_DEFAULT_LIMIT', str(DEFAULT_LIMIT))),
        'PAGE_MAX_LIMIT': int(os.getenv('PAGE_MAX_LIMIT', str(MAX_LIMIT))),
    }


def normalize_pagination(limit_raw, offset_raw, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT):
    try:
        limit = int(limit_raw) if limit_raw is not None else default_limit
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset
