from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from sqlalchemy import select
from exco_programs.models.user import User
from exco_programs import get_db
from exco_programs.constants.roles import ADMIN_ROLES, ROLE_GRANTS, Role, parse_role
from exco_programs.decorators.audit import audit_log
from exco_programs.decorators.auth import require_roles
from exco_programs.utils.filters import apply_filters
from exco_programs.utils.listing import (
    apply_pagination, handle_conditional, make_cached_list_response, pagination_params,
)

iam_bp = Blueprint('iam', __name__)

USER_FIELDS = ('name', 'email', 'phone', 'department', 'role', 'is_active')


def _user_json(u: User):
    role = parse_role(u.role)
    return {
        'id': u.id,
        'name': u.name,
        'email': u.email,
        'phone': u.phone,
        'department': u.department,
        'role': role.value if role else u.role,
        'is_active': u.is_active,
    }


def _role_or_400(raw) -> Role:
    role = parse_role(raw)
    if role is None:
        abort(400, description='role invalid')
    return role


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.verify_password(password):
        abort(401, description='invalid credentials')
    if not user.is_active:
        abort(403, description='account disabled')
    role = parse_role(user.role)
    claims = {
        'role': role.value if role else user.role,
        'name': user.name,
        'perms': sorted(a.value for a in ROLE_GRANTS.get(role, ())),
    }
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=claims)
    return {'access_token': token, 'user': _user_json(user)}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    user_id = int(get_jwt_identity())
    session = get_db()
    user = session.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    role = parse_role(user.role)
    return {
        **_user_json(user),
        'perms': sorted(a.value for a in ROLE_GRANTS.get(role, ())),
    }


# --- User Management (admin only) ---

@iam_bp.get('/users')
@require_roles(*ADMIN_ROLES)
def list_users():
    session = get_db()
    limit, offset = pagination_params()
    stmt = apply_filters(select(User), {
        'role': {'coerce': _role_or_400, 'op': lambda s, v: s.where(User.role == v.value)},
        'active': {'coerce': lambda v: str(v).lower() in ('1', 'true', 'yes'),
                   'op': lambda s, v: s.where(User.is_active.is_(v))},
    }, request.args)
    rows, total = apply_pagination(session, stmt.order_by(User.id.asc()), limit, offset)
    data = [_user_json(u) for u in rows]
    latest_ts = max((u.updated_at for u in rows if u.updated_at), default=None)
    resp, etag = make_cached_list_response(data, total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


@iam_bp.post('/users')
@require_roles(*ADMIN_ROLES)
@audit_log('USER.CREATE', entity='User', entity_id_key='id', meta_keys=['email', 'role'])
def create_user():
    data = request.json or {}
    for field in ('name', 'email', 'password'):
        if not data.get(field):
            abort(400, description=f'{field} required')
    role = _role_or_400(data.get('role', Role.USER.value))
    session = get_db()
    if session.execute(select(User).where(User.email == data['email'])).scalar_one_or_none():
        abort(400, description='email exists')
    user = User(
        name=data['name'],
        email=data['email'],
        phone=data.get('phone'),
        department=data.get('department'),
        role=role.value,
        is_active=bool(data.get('is_active', True)),
    )
    user.set_password(data['password'])
    session.add(user)
    session.commit()
    return _user_json(user), 201


def _user_before(args, kwargs):
    user = get_db().get(User, kwargs.get('user_id'))
    return _user_json(user) if user else {}


@iam_bp.patch('/users/<int:user_id>')
@require_roles(*ADMIN_ROLES)
@audit_log('USER.UPDATE', entity='User', entity_id_key='id',
           diff_keys=USER_FIELDS, pre_fetch=_user_before)
def update_user(user_id: int):
    data = request.json or {}
    session = get_db()
    user = session.get(User, user_id)
    if not user:
        abort(404)
    if 'role' in data:
        user.role = _role_or_400(data['role']).value
    for field in ('name', 'phone', 'department'):
        if field in data:
            setattr(user, field, data[field])
    if 'is_active' in data:
        if user_id == int(get_jwt_identity()) and not data['is_active']:
            abort(400, description='cannot deactivate yourself')
        user.is_active = bool(data['is_active'])
    if data.get('password'):
        user.set_password(data['password'])
    session.commit()
    return _user_json(user)
