import os

# Must be set before config is imported anywhere.
os.environ.setdefault('APP_ENV', 'testing')
os.environ.setdefault('BCRYPT_ROUNDS', '4')

import mongomock
import pytest

from dm_server.messaging.presence import PresenceRegistry
from dm_server.messaging.repository import MessageRepository
from dm_server.security.authentication import AuthSecurity
from server import create_app


class RecordingEmitter:
    """Stands in for EventEmitter: records pushes for identities marked online."""

    def __init__(self, online=()):
        self.online = set(online)
        self.pushes = []

    def emit_to_user(self, identity, event, data):
        if identity not in self.online:
            return False
        self.pushes.append((identity, event, data))
        return True

    def events_for(self, identity):
        return [(event, data) for who, event, data in self.pushes if who == identity]


@pytest.fixture
def db():
    return mongomock.MongoClient().chat_db


@pytest.fixture
def message_repo(db):
    return MessageRepository(db['chat_messages'])


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def app(db, tmp_path):
    app = create_app(db=db, registry=PresenceRegistry(), upload_dir=str(tmp_path / 'uploads'))
    app.config['TESTING'] = True
    return app


@pytest.fixture
def socketio(app):
    return app.extensions['socketio']


@pytest.fixture
def registry(app):
    return app.extensions['presence_registry']


@pytest.fixture
def http(app):
    return app.test_client()


@pytest.fixture
def connect(app, socketio):
    """Open a socket test client, optionally identified; its inbox starts empty."""
    clients = []

    def _connect(identity=None, auth=None):
        client = socketio.test_client(app, auth=auth)
        if identity:
            ack = client.emit('presence:identify', {'identity': identity}, callback=True)
            assert ack['success'] is True
        client.get_received()
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        if client.is_connected():
            client.disconnect()


def auth_headers(email, name=None):
    return {'Authorization': f'Bearer {AuthSecurity.create_access_token(email, name)}'}


def received(client, event):
    """Payloads of every ``event`` the client got since the last call."""
    return [msg['args'][0] for msg in client.get_received() if msg['name'] == event]
