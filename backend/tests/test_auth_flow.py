from exco_programs import get_db
from exco_programs.models.audit import AuditLog
from exco_programs.models.user import User
from tests.test_utils_seed import ensure_user, login


def test_login_and_me(client):
    ensure_user('t@example.com', 'Finance MMK', name='T')
    resp = client.post('/iam/auth/login', json={'email': 't@example.com', 'password': 'pw'})
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['user']['role'] == 'finance_mmk'
    token = body['access_token']

    me = client.get('/iam/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    body = me.get_json()
    assert body['email'] == 't@example.com'
    assert 'accept_document' in body['perms']
    assert 'create' not in body['perms']


def test_login_failures(client):
    u = ensure_user('disabled@example.com')
    assert client.post('/iam/auth/login', json={'email': u.email}).status_code == 400
    assert client.post('/iam/auth/login', json={'email': u.email, 'password': 'bad'}).status_code == 401
    u.is_active = False
    get_db().commit()
    resp = client.post('/iam/auth/login', json={'email': u.email, 'password': 'pw'})
    assert resp.status_code == 403
    assert resp.get_json()['error']['detail'] == 'account disabled'


def test_requests_without_token_are_rejected(client):
    assert client.get('/programs').status_code == 401
    assert client.get('/iam/auth/me').status_code == 401


def test_admin_manages_users(client):
    ensure_user('useradmin@example.com', 'admin')
    headers = login(client, 'useradmin@example.com')
    resp = client.post('/iam/users', json={
        'name': 'New Officer', 'email': 'new_officer@example.com', 'password': 'pw', 'role': 'finance',
    }, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    created = resp.get_json()
    assert created['role'] == 'finance_officer'
    audit = get_db().query(AuditLog).filter_by(action='USER.CREATE', entity_id=str(created['id'])).one()
    assert audit.meta == {'email': 'new_officer@example.com', 'role': 'finance_officer'}

    dup = client.post('/iam/users', json={'name': 'x', 'email': 'new_officer@example.com', 'password': 'pw'},
                      headers=headers)
    assert dup.status_code == 400
    bad = client.post('/iam/users', json={'name': 'x', 'email': 'r@example.com', 'password': 'pw', 'role': 'boss'},
                      headers=headers)
    assert bad.status_code == 400

    resp = client.patch(f"/iam/users/{created['id']}", json={'role': 'finance_mmk', 'department': 'MMK'},
                        headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['role'] == 'finance_mmk'
    update = get_db().query(AuditLog).filter_by(action='USER.UPDATE', entity_id=str(created['id'])).one()
    assert update.meta['changes']['role'] == {'before': 'finance_officer', 'after': 'finance_mmk'}

    listing = client.get('/iam/users?role=finance_mmk', headers=headers)
    assert listing.status_code == 200
    assert created['id'] in [u['id'] for u in listing.get_json()['data']]
    etag = listing.headers['ETag']
    assert client.get('/iam/users?role=finance_mmk', headers={**headers, 'If-None-Match': etag}).status_code == 304


def test_admin_cannot_deactivate_self(client):
    admin = ensure_user('selfadmin@example.com', 'super_admin')
    headers = login(client, admin.email)
    resp = client.patch(f'/iam/users/{admin.id}', json={'is_active': False}, headers=headers)
    assert resp.status_code == 400
    assert get_db().get(User, admin.id).is_active


def test_user_management_requires_admin(client):
    ensure_user('plainuser@example.com', 'user')
    headers = login(client, 'plainuser@example.com')
    resp = client.get('/iam/users', headers=headers)
    assert resp.status_code == 403
    assert resp.get_json()['error']['detail'] == 'You are not allowed to do this'
