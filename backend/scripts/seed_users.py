#!/usr/bin/env python
"""Idempotent seed script for demo users (one per role).

Usage:
    python backend/scripts/seed_users.py               # seed normally
    python backend/scripts/seed_users.py --show-users  # print users grouped by role (after ensuring seed)
    python backend/scripts/seed_users.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_users.py --validate    # exit non-zero if any stored role is unknown
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from exco_programs import create_app, get_db  # type: ignore
from exco_programs.constants.roles import parse_role
from exco_programs.models.user import User
from seeds.demo_users import DEFAULT_DEPARTMENT, DEMO_USERS


def ensure_demo_users(session, password: str, users=DEMO_USERS):
    """Create missing demo users and normalize legacy role spellings. Returns (created, normalized)."""
    existing = {u.email: u for u in session.execute(select(User)).scalars().all()}
    created = 0
    for spec in users:
        if spec['email'] in existing:
            continue
        user = User(
            name=spec['name'],
            email=spec['email'],
            phone=spec.get('phone'),
            department=spec.get('department', DEFAULT_DEPARTMENT),
            role=parse_role(spec['role']).value,
            password_hash='',
        )
        user.set_password(password)
        session.add(user)
        created += 1
    normalized = 0
    for user in existing.values():
        role = parse_role(user.role)
        if role is not None and role.value != user.role:
            user.role = role.value
            normalized += 1
    session.flush()
    return created, normalized


def invalid_roles(session):
    return [(u.email, u.role) for u in session.execute(select(User)).scalars().all() if parse_role(u.role) is None]


def users_by_role(session):
    mapping = {}
    for user in session.execute(select(User).order_by(User.email)).scalars().all():
        mapping.setdefault(user.role, []).append(user.email)
    return mapping


def print_user_summary(session):
    mapping = users_by_role(session)
    if not mapping:
        print("[INFO] No users present.")
        return
    role_w = max(len(r) for r in mapping)
    print(f"{'Role'.ljust(role_w)} | Count | Emails")
    print('-' * (role_w + 40))
    for role, emails in sorted(mapping.items()):
        print(f"{role.ljust(role_w)} | {str(len(emails)).rjust(5)} | {', '.join(emails)}")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed demo users for each role",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_users.py\n  dry run: seed_users.py --dry-run\n  show users: seed_users.py --show-users\n""")
    )
    p.add_argument('--show-users', action='store_true', help='Print users grouped by role after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export role->emails JSON (to FILE or stdout if omitted)')
    p.add_argument('--validate', action='store_true', help='Exit non-zero if any stored role is unknown')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        # Auto-create schema for bootstrap; in real env prefer alembic upgrade
        from exco_programs.models.base import Base
        import exco_programs.models.program, exco_programs.models.audit, exco_programs.models.notification  # noqa: F401
        Base.metadata.create_all(session.get_bind())

        created, normalized = ensure_demo_users(session, os.getenv('SEED_PASSWORD', 'ChangeMe123!'))
        if args.validate:
            problems = invalid_roles(session)
            if problems:
                print('\n[VALIDATION] FAIL:')
                for email, role in problems:
                    print(f" - {email}: unknown role {role!r}")
                session.rollback()
                sys.exit(2)
            print('[VALIDATION] OK: All user roles valid.')
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Users would create: {created}, roles would normalize: {normalized}")
        else:
            session.commit()
            print(f"[DONE] Users created: {created}, roles normalized: {normalized}")
        if args.show_users:
            print_user_summary(session)
        if args.export_json:
            data = json.dumps(users_by_role(session), indent=2, sort_keys=True)
            if args.export_json == '-':
                print(data)
            else:
                with open(args.export_json, 'w', encoding='utf-8') as fh:
                    fh.write(data)
                print(f"[INFO] Exported role map to {args.export_json}")


if __name__ == '__main__':
    main()
