from tests.test_utils_seed import Team
from tests.test_lifecycle_helpers import act, create_program, submitted_program


def _inbox(client, headers, **params):
    resp = client.get('/programs/queries', query_string=params, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def test_query_inbox_is_scoped_to_owner_or_finance(client):
    team = Team(client, 'inbox')
    mine = submitted_program(client, team, title='Inbox Mine')
    theirs = create_program(client, team.other, title='Inbox Theirs')
    theirs = act(client, theirs['id'], 'submit', team.other)
    act(client, mine['id'], 'query', team.officer, {'queryText': 'receipts?'})
    act(client, theirs['id'], 'query', team.officer, {'queryText': 'bank letter?'})

    own = _inbox(client, team.owner, program_id=mine['id'])
    assert [q['queryText'] for q in own['data']] == ['receipts?']
    entry = own['data'][0]
    assert entry['programTitle'] == 'Inbox Mine'
    assert entry['programStatus'] == 'queried'
    assert entry['status'] == 'pending'
    # another owner's program never leaks into the inbox
    assert _inbox(client, team.owner, program_id=theirs['id'])['data'] == []

    for headers in (team.officer, team.admin):
        finance_ids = {q['programId'] for q in _inbox(client, headers, limit=200)['data']}
        assert {mine['id'], theirs['id']} <= finance_ids


def test_query_inbox_status_filter(client):
    team = Team(client, 'inboxstatus')
    body = submitted_program(client, team, title='Inbox Status')
    act(client, body['id'], 'query', team.officer, {'queryText': 'first'})
    act(client, body['id'], 'answer-query', team.owner, {'answerText': 'done'})
    act(client, body['id'], 'query', team.officer, {'queryText': 'second'})

    pending = _inbox(client, team.owner, program_id=body['id'], status='pending')['data']
    answered = _inbox(client, team.owner, program_id=body['id'], status='answered')['data']
    assert [q['queryText'] for q in pending] == ['second']
    assert [q['answerText'] for q in answered] == ['done']
    assert _inbox(client, team.owner, program_id=body['id'])['pagination']['total'] == 2
    resp = client.get('/programs/queries?status=closed', headers=team.owner)
    assert resp.status_code == 400


def test_document_history_keeps_replaced_versions(client):
    team = Team(client, 'dochist')
    body = create_program(client, team.owner, title='Doc History', documents=[
        {'storedName': 'surat-1.pdf', 'originalName': 'surat.pdf', 'category': 'Surat Program'},
    ])
    resp = client.patch(f"/programs/{body['id']}", headers=team.owner, json={'documents': [
        {'storedName': 'surat-2.pdf', 'originalName': 'surat.pdf', 'category': 'Surat Program', 'version': 1},
    ]})
    assert resp.status_code == 200
    assert [d['storedName'] for d in resp.get_json()['currentDocuments']] == ['surat-2.pdf']

    resp = client.get(f"/programs/{body['id']}/documents/history", query_string={'category': 'Surat Program'},
                      headers=team.owner)
    assert resp.status_code == 200
    data = resp.get_json()
    assert [(d['storedName'], d['version']) for d in data['data']] == [('surat-2.pdf', 2), ('surat-1.pdf', 1)]
    assert [d['storedName'] for d in data['current']] == ['surat-2.pdf']

    bad = client.get(f"/programs/{body['id']}/documents/history?category=Nope", headers=team.owner)
    assert bad.status_code == 400
    other = client.get(f"/programs/{body['id']}/documents/history", headers=team.other)
    assert other.status_code == 403
