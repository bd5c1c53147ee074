import pytest
from pymongo.errors import ServerSelectionTimeoutError

from dm_server.exception.MessagingError import StoreUnavailableError
from dm_server.messaging.models import ContentType, DeliveryStatus
from dm_server.messaging.presence import PresenceRegistry
from dm_server.messaging.repository import MessageRepository
from dm_server.messaging.service import MessagingService
from dm_server.websocket import event_emitter
from dm_server.websocket.event_emitter import EventEmitter

ALICE = 'alice@example.com'
BOB = 'bob@example.com'
CAROL = 'carol@example.com'


class UnreachableCollection:
    """Every driver call fails as if the server could not be selected."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ServerSelectionTimeoutError('no servers available')
        return fail


class AdvanceFailsOnceRepository(MessageRepository):
    """Insert succeeds but the first PENDING -> SENT write is lost."""

    def __init__(self, collection):
        super().__init__(collection)
        self.failures_left = 1

    def advance_status(self, message_id, target):
        if self.failures_left:
            self.failures_left -= 1
            raise StoreUnavailableError('write timed out')
        return super().advance_status(message_id, target)


@pytest.fixture
def service(message_repo, emitter):
    return MessagingService(repo=message_repo, emitter=emitter)


def text_from(sender, recipient, content='hello', **extra):
    payload = {'sentBy': sender, 'sentTo': recipient, 'content': content, 'type': 'text'}
    payload.update(extra)
    return payload


def stored_status(repo, message_id):
    return repo.get_message(message_id).delivery_status


# =============================================================================
# Submission
# =============================================================================

def test_submit_to_online_recipient_pushes_and_acks_sent(service, message_repo, emitter):
    emitter.online.add(BOB)

    ack = service.submit(ContentType.TEXT, text_from(ALICE, BOB, id='m1'))

    assert ack['success'] is True
    assert ack['status'] == 'SENT'
    assert stored_status(message_repo, 'm1') is DeliveryStatus.SENT
    [(event, payload)] = emitter.events_for(BOB)
    assert event == 'chat:message:text'
    assert payload['id'] == 'm1'
    assert payload['content'] == 'hello'
    assert payload['deliveryStatus'] == 'SENT'


def test_submit_to_offline_recipient_still_reaches_sent(service, message_repo, emitter):
    ack = service.submit('text', text_from(ALICE, BOB, id='m1'))

    assert ack['status'] == 'SENT'
    assert emitter.pushes == []
    assert stored_status(message_repo, 'm1') is DeliveryStatus.SENT


def test_offline_message_appears_in_recipient_history(service, message_repo):
    service.submit('text', text_from(ALICE, BOB, content='are you there?', id='m1'))

    [message] = message_repo.get_conversation_messages(BOB, ALICE)
    assert message.message_id == 'm1'
    assert message.content.raw == 'are you there?'
    assert message.delivery_status is DeliveryStatus.SENT


def test_submit_assigns_id_and_keeps_client_timestamp(service, message_repo):
    ack = service.submit('text', text_from(ALICE, BOB, timestamp=1700000000000))

    message = ack['message']
    assert message['id']
    assert message['timestamp'] == '2023-11-14T22:13:20+00:00'
    assert message_repo.get_message(message['id']) is not None


def test_media_submission_uses_its_own_push_channel(service, emitter):
    emitter.online.add(BOB)

    ack = service.submit(ContentType.RECORDED_AUDIO, {
        'sentBy': ALICE, 'sentTo': BOB, 'content': 'voice.m4a', 'type': 'recorded_audio'
    })

    assert ack['success'] is True
    [(event, payload)] = emitter.events_for(BOB)
    assert event == 'chat:message:recorded_audio'
    assert payload['type'] == 'recorded_audio'


@pytest.mark.parametrize('payload', [
    'not an object',
    {'sentTo': BOB, 'content': 'hi'},
    {'sentBy': ALICE, 'content': 'hi'},
    {'sentBy': ALICE, 'sentTo': BOB, 'content': ''},
    {'sentBy': ALICE, 'sentTo': BOB, 'content': 'hi', 'type': 'uploaded_image'},
    {'sentBy': ALICE, 'sentTo': BOB, 'content': 'hi', 'deliveryStatus': 'DELIVERED'},
    {'sentBy': ALICE, 'sentTo': BOB, 'content': 'hi', 'timestamp': 'yesterday'},
])
def test_invalid_submission_is_rejected_before_store(service, db, emitter, payload):
    emitter.online.add(BOB)

    ack = service.submit('text', payload)

    assert ack['success'] is False
    assert ack['error']['code'] == 'INVALID_DATA'
    assert db['chat_messages'].count_documents({}) == 0
    assert emitter.pushes == []


def test_unknown_content_channel_is_rejected(service):
    ack = service.submit('sticker', text_from(ALICE, BOB))
    assert ack['error']['code'] == 'INVALID_DATA'


def test_sender_must_match_identified_connection(service, db):
    ack = service.submit('text', text_from(CAROL, BOB), connection_identity=ALICE)

    assert ack['success'] is False
    assert db['chat_messages'].count_documents({}) == 0


def test_store_failure_is_reported_and_nothing_is_pushed(emitter):
    emitter.online.add(BOB)
    service = MessagingService(repo=MessageRepository(UnreachableCollection()), emitter=emitter)

    ack = service.submit('text', text_from(ALICE, BOB))

    assert ack['success'] is False
    assert ack['error']['code'] == 'STORE_UNAVAILABLE'
    assert emitter.pushes == []


def test_resubmitted_id_is_acknowledged_once(service, db, emitter):
    emitter.online.add(BOB)

    first = service.submit('text', text_from(ALICE, BOB, id='m1'))
    second = service.submit('text', text_from(ALICE, BOB, id='m1', content='edited'))

    assert first['status'] == second['status'] == 'SENT'
    assert second['duplicate'] is True
    assert second['message']['content'] == 'hello'
    assert db['chat_messages'].count_documents({}) == 1
    assert len(emitter.events_for(BOB)) == 1


def test_id_owned_by_another_sender_is_rejected(service):
    service.submit('text', text_from(ALICE, BOB, id='m1'))

    ack = service.submit('text', text_from(CAROL, BOB, id='m1'))

    assert ack['success'] is False
    assert ack['error']['code'] == 'INVALID_DATA'


def test_resubmission_never_regresses_seen(service, message_repo):
    service.submit('text', text_from(ALICE, BOB, id='m1'))
    service.mark_read('m1', reader=BOB)

    ack = service.submit('text', text_from(ALICE, BOB, id='m1'))

    assert ack['status'] == 'SEEN'
    assert stored_status(message_repo, 'm1') is DeliveryStatus.SEEN


def test_resubmission_after_failed_advance_delivers_once(db, emitter):
    emitter.online.add(BOB)
    repo = AdvanceFailsOnceRepository(db['chat_messages'])
    service = MessagingService(repo=repo, emitter=emitter)

    first = service.submit('text', text_from(ALICE, BOB, id='m1'))

    assert first['error']['code'] == 'STORE_UNAVAILABLE'
    assert stored_status(repo, 'm1') is DeliveryStatus.PENDING
    assert emitter.pushes == []

    retry = service.submit('text', text_from(ALICE, BOB, id='m1'))
    again = service.submit('text', text_from(ALICE, BOB, id='m1'))

    assert retry['status'] == again['status'] == 'SENT'
    assert stored_status(repo, 'm1') is DeliveryStatus.SENT
    [(event, payload)] = emitter.events_for(BOB)
    assert event == 'chat:message:text'
    assert payload['id'] == 'm1'
    assert payload['deliveryStatus'] == 'SENT'


# =============================================================================
# Read receipts
# =============================================================================

def test_mark_read_notifies_sender_once(service, message_repo, emitter):
    emitter.online.update({ALICE, BOB})
    service.submit('text', text_from(ALICE, BOB, id='m1'))

    first = service.mark_read('m1', reader=BOB)
    second = service.mark_read('m1', reader=BOB)

    assert first == second == {'success': True, 'status': 'SEEN'}
    assert stored_status(message_repo, 'm1') is DeliveryStatus.SEEN
    assert emitter.events_for(ALICE) == [
        ('chat:message:read', {'id': 'm1', 'deliveryStatus': 'SEEN'})
    ]


def test_mark_read_unknown_message_is_benign(service, emitter):
    assert service.mark_read('missing') == {'success': True, 'status': None}
    assert emitter.pushes == []


def test_mark_read_requires_an_id(service):
    ack = service.mark_read(None)
    assert ack['error']['code'] == 'INVALID_DATA'


def test_only_recipient_can_mark_read(service, message_repo):
    service.submit('text', text_from(ALICE, BOB, id='m1'))

    ack = service.mark_read('m1', reader=CAROL)

    assert ack['success'] is False
    assert stored_status(message_repo, 'm1') is DeliveryStatus.SENT


def test_mark_all_read_reports_each_message_exactly_once(service, message_repo, emitter):
    emitter.online.add(ALICE)
    for n in range(3):
        service.submit('text', text_from(ALICE, BOB, id=f'm{n}', timestamp=1700000000000 + n))
    service.submit('text', text_from(BOB, ALICE, id='reply'))

    ack = service.mark_all_read(BOB, ALICE, reader=BOB)
    again = service.mark_all_read(BOB, ALICE, reader=BOB)

    assert ack == {'success': True, 'count': 3}
    assert again == {'success': True, 'count': 0}
    batches = [data for event, data in emitter.events_for(ALICE) if event == 'chat:message:read_all']
    assert len(batches) == 1
    messages = batches[0]
    assert [m['id'] for m in messages] == ['m0', 'm1', 'm2']
    assert {m['deliveryStatus'] for m in messages} == {'SEEN'}
    # the reader's own outgoing message is untouched
    assert stored_status(message_repo, 'reply') is DeliveryStatus.SENT


def test_single_read_after_bulk_read_stays_seen_without_notification(service, message_repo, emitter):
    emitter.online.add(ALICE)
    service.submit('text', text_from(ALICE, BOB, id='m1'))
    service.mark_all_read(BOB, ALICE)
    emitter.pushes.clear()

    assert service.mark_read('m1', reader=BOB)['status'] == 'SEEN'
    assert stored_status(message_repo, 'm1') is DeliveryStatus.SEEN
    assert emitter.pushes == []


def test_mark_all_read_for_someone_else_is_rejected(service):
    ack = service.mark_all_read(BOB, ALICE, reader=CAROL)
    assert ack['success'] is False


# =============================================================================
# Hide
# =============================================================================

def test_hide_only_affects_the_requesting_party(service, message_repo):
    service.submit('text', text_from(ALICE, BOB, id='m1'))
    service.submit('text', text_from(BOB, ALICE, id='m2'))

    assert service.hide('m1', ALICE) == {'success': True, 'id': 'm1'}

    assert [m.message_id for m in message_repo.get_conversation_messages(ALICE, BOB)] == ['m2']
    assert {m.message_id for m in message_repo.get_conversation_messages(BOB, ALICE)} == {'m1', 'm2'}


def test_hides_by_both_parties_are_independent(service, message_repo):
    service.submit('text', text_from(ALICE, BOB, id='m1'))
    service.submit('text', text_from(ALICE, BOB, id='m2', timestamp=1700000000000))

    service.hide('m1', ALICE)
    service.hide('m1', BOB)
    service.hide('m1', ALICE)

    assert [m.message_id for m in message_repo.get_conversation_messages(ALICE, BOB)] == ['m2']
    assert [m.message_id for m in message_repo.get_conversation_messages(BOB, ALICE)] == ['m2']
    assert message_repo.get_message('m1').to_dict()['deleteFor'] == [ALICE, BOB]


def test_hide_by_stranger_is_not_found(service):
    service.submit('text', text_from(ALICE, BOB, id='m1'))

    ack = service.hide('m1', CAROL)

    assert ack['error']['code'] == 'NOT_FOUND'


# =============================================================================
# Push targeting
# =============================================================================

class ExplodingSocketIO:
    def __init__(self):
        self.calls = []

    def emit(self, event, data, to=None):
        self.calls.append((event, to))
        raise ConnectionError('transport closed')


def test_push_to_vanished_connection_is_dropped(monkeypatch):
    registry = PresenceRegistry()
    registry.register(BOB, 'sid-bob')
    socketio = ExplodingSocketIO()
    monkeypatch.setattr(event_emitter, '_socketio', socketio)
    monkeypatch.setattr(event_emitter, '_registry', registry)

    assert EventEmitter.emit_to_user(BOB, 'chat:message:text', {'id': 'm1'}) is False
    assert socketio.calls == [('chat:message:text', 'sid-bob')]
    assert EventEmitter.emit_to_user(CAROL, 'chat:message:text', {'id': 'm1'}) is False
    assert len(socketio.calls) == 1


def test_submission_survives_failed_push(monkeypatch, message_repo):
    registry = PresenceRegistry()
    registry.register(BOB, 'sid-bob')
    monkeypatch.setattr(event_emitter, '_socketio', ExplodingSocketIO())
    monkeypatch.setattr(event_emitter, '_registry', registry)
    service = MessagingService(repo=message_repo)

    ack = service.submit('text', text_from(ALICE, BOB, id='m1'))

    assert ack['status'] == 'SENT'
    assert stored_status(message_repo, 'm1') is DeliveryStatus.SENT
