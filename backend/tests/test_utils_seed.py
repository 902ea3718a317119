"""Test seeding utilities shared by the API tests.

Users are created idempotently by email so tests sharing the session-scoped
in-memory database never collide.
"""
from typing import Dict, Optional
from flask_jwt_extended import create_access_token
from exco_programs import get_db
from exco_programs.models.user import User
from exco_programs.constants.roles import parse_role


def ensure_user(email: str, role: str = 'user', name: Optional[str] = None, password: str = 'pw') -> User:
    session = get_db()
    u = session.query(User).filter_by(email=email).one_or_none()
    if not u:
        u = User(name=name or email.split('@')[0], email=email, role=parse_role(role).value, password_hash='')
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def login(client, email: str, password: str = 'pw') -> Dict[str, str]:
    resp = client.post('/iam/auth/login', json={'email': email, 'password': password})
    assert resp.status_code == 200, resp.get_json()
    return {'Authorization': f"Bearer {resp.get_json()['access_token']}"}


def seed_and_login(client, email: str, role: str = 'user', name: Optional[str] = None) -> Dict[str, str]:
    ensure_user(email, role=role, name=name)
    return login(client, email)


def jwt_headers(user_id: int, role: str, name: str = 'Direct'):
    """Bypass /login, e.g. for roles no seeded user holds."""
    token = create_access_token(identity=str(user_id), additional_claims={'role': role, 'name': name, 'perms': []})
    return {'Authorization': f'Bearer {token}'}


class Team:
    """One user per role, logged in. Emails are prefixed so each test gets its own people."""

    def __init__(self, client, prefix: str):
        self.owner_user = ensure_user(f'{prefix}_owner@example.com', 'user', name=f'{prefix} Owner')
        self.other_user = ensure_user(f'{prefix}_other@example.com', 'user')
        self.officer_user = ensure_user(f'{prefix}_officer@example.com', 'finance_officer', name=f'{prefix} Officer')
        self.mmk_user = ensure_user(f'{prefix}_mmk@example.com', 'Finance MMK', name=f'{prefix} MMK')
        self.admin_user = ensure_user(f'{prefix}_admin@example.com', 'admin')
        self.owner = login(client, self.owner_user.email)
        self.other = login(client, self.other_user.email)
        self.officer = login(client, self.officer_user.email)
        self.mmk = login(client, self.mmk_user.email)
        self.admin = login(client, self.admin_user.email)
