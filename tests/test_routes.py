import io

import pytest

from dm_server.messaging.service import get_messaging_service

from conftest import auth_headers

ALICE = 'alice@example.com'
BOB = 'bob@example.com'


def register(http, name, email, password='secret'):
    return http.post('/api/auth/register', json={
        'name': name, 'email': email, 'password': password, 'imageUrl': f'https://img/{name}.png'
    })


@pytest.fixture
def conversation(app):
    service = get_messaging_service()
    service.submit('text', {'id': 'm1', 'sentBy': ALICE, 'sentTo': BOB, 'content': 'hi', 'timestamp': 1700000000000})
    service.submit('text', {'id': 'm2', 'sentBy': BOB, 'sentTo': ALICE, 'content': 'hey', 'timestamp': 1700000001000})
    service.submit('uploaded_image', {'id': 'm3', 'sentBy': ALICE, 'sentTo': BOB, 'content': 'a.png', 'timestamp': 1700000002000})
    service.submit('recorded_audio', {'id': 'm4', 'sentBy': BOB, 'sentTo': ALICE, 'content': 'b.m4a', 'timestamp': 1700000003000})
    service.submit('text', {'id': 'other', 'sentBy': ALICE, 'sentTo': 'carol@example.com', 'content': 'psst'})
    return service


# =============================================================================
# Auth
# =============================================================================

def test_register_then_login(http):
    res = register(http, 'Alice', ALICE)
    assert res.status_code == 201
    body = res.get_json()
    assert body['token']
    assert body['user'] == {'name': 'Alice', 'email': ALICE, 'imageUrl': 'https://img/Alice.png'}

    res = http.post('/api/auth/login', json={'email': ALICE, 'password': 'secret'})
    assert res.status_code == 200
    assert res.get_json()['user']['email'] == ALICE


def test_register_duplicate_email(http):
    register(http, 'Alice', ALICE)
    assert register(http, 'Other Alice', ALICE).status_code == 409


def test_register_requires_every_field(http):
    res = http.post('/api/auth/register', json={'email': 'not-an-email'})
    assert res.status_code == 400
    assert set(res.get_json()['errors']) == {'name', 'email', 'password', 'imageUrl'}


def test_login_with_wrong_password(http):
    register(http, 'Alice', ALICE)
    res = http.post('/api/auth/login', json={'email': ALICE, 'password': 'nope'})
    assert res.status_code == 401


def test_users_lists_everyone_but_the_caller(http):
    register(http, 'Alice', ALICE)
    register(http, 'Bob', BOB)

    res = http.get('/api/chat/users', headers=auth_headers(ALICE))

    assert res.status_code == 200
    users = res.get_json()['users']
    assert users == [{'name': 'Bob', 'email': BOB, 'imageUrl': 'https://img/Bob.png'}]


@pytest.mark.parametrize('headers', [{}, {'Authorization': 'Bearer garbage'}, {'Authorization': 'Token abc'}])
def test_protected_routes_reject_missing_or_bad_tokens(http, headers):
    assert http.get('/api/chat/users', headers=headers).status_code == 401


# =============================================================================
# History
# =============================================================================

def test_conversation_history_is_oldest_first(http, conversation):
    res = http.get(f'/api/chat/conversations/{BOB}/messages', headers=auth_headers(ALICE))

    assert res.status_code == 200
    messages = res.get_json()['messages']
    assert [m['id'] for m in messages] == ['m1', 'm2', 'm3', 'm4']
    assert messages[0]['deliveryStatus'] == 'SENT'


def test_conversation_history_limit_keeps_newest(http, conversation):
    res = http.get(f'/api/chat/conversations/{BOB}/messages?limit=2', headers=auth_headers(ALICE))
    assert [m['id'] for m in res.get_json()['messages']] == ['m3', 'm4']


def test_conversation_history_rejects_negative_limit(http, conversation):
    res = http.get(f'/api/chat/conversations/{BOB}/messages?limit=-1', headers=auth_headers(ALICE))
    assert res.status_code == 400


def test_media_gallery_filters_by_group(http, conversation):
    res = http.get(f'/api/chat/conversations/{BOB}/media?type=image', headers=auth_headers(ALICE))
    assert [m['id'] for m in res.get_json()['messages']] == ['m3']

    res = http.get(f'/api/chat/conversations/{BOB}/media', headers=auth_headers(ALICE))
    assert [m['id'] for m in res.get_json()['messages']] == ['m3', 'm4']


def test_media_gallery_rejects_text(http, conversation):
    res = http.get(f'/api/chat/conversations/{BOB}/media?type=text', headers=auth_headers(ALICE))
    assert res.status_code == 400


def test_online_lists_identified_connections(http, connect):
    connect(BOB)

    res = http.get('/api/chat/online', headers=auth_headers(ALICE))

    assert res.get_json()['online'] == [BOB]


def test_health(http):
    res = http.get('/health')
    assert res.status_code == 200
    assert res.get_json()['status'] == 'ok'


# =============================================================================
# Uploads
# =============================================================================

def test_upload_and_fetch_blob(http):
    res = http.post(
        '/api/upload/uploaded_image',
        data={'file': (io.BytesIO(b'\x89PNG fake'), 'holiday.png')},
        content_type='multipart/form-data',
        headers=auth_headers(ALICE),
    )
    assert res.status_code == 201
    body = res.get_json()
    assert body['ref'].endswith('.png')

    res = http.get(body['url'])
    assert res.status_code == 200
    assert res.data == b'\x89PNG fake'


@pytest.mark.parametrize('content_type, filename', [
    ('uploaded_image', 'script.exe'),
    ('text', 'note.png'),
    ('sticker', 'a.png'),
])
def test_upload_rejects_bad_requests(http, content_type, filename):
    res = http.post(
        f'/api/upload/{content_type}',
        data={'file': (io.BytesIO(b'data'), filename)},
        content_type='multipart/form-data',
        headers=auth_headers(ALICE),
    )
    assert res.status_code == 400


def test_upload_requires_file(http):
    res = http.post('/api/upload/uploaded_image', data={}, headers=auth_headers(ALICE))
    assert res.status_code == 400


def test_unknown_blob_is_404(http):
    assert http.get('/api/upload/uploaded_image/missing.png').status_code == 404


def test_oversize_upload_is_413(app, http):
    app.config['MAX_CONTENT_LENGTH'] = 1024

    res = http.post(
        '/api/upload/uploaded_image',
        data={'file': (io.BytesIO(b'x' * 4096), 'big.png')},
        content_type='multipart/form-data',
        headers=auth_headers(ALICE),
    )

    assert res.status_code == 413
    assert res.get_json()['success'] is False
