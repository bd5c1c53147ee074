from datetime import datetime, timezone

import pytest

from dm_server.exception.MessagingError import ValidationError
from dm_server.messaging.models import (
    ContentType, DeliveryStatus, Message, Text, RecordedAudio, CapturedImage, build_content
)


def test_content_type_parse_accepts_tags_case_insensitively():
    assert ContentType.parse('Recorded_Audio') is ContentType.RECORDED_AUDIO
    assert ContentType.parse(ContentType.TEXT) is ContentType.TEXT


def test_content_type_parse_rejects_unknown_tag():
    with pytest.raises(ValidationError) as exc:
        ContentType.parse('sticker')
    assert exc.value.code == 'INVALID_DATA'


def test_only_text_is_not_media():
    assert [t for t in ContentType if not t.is_media] == [ContentType.TEXT]


def test_status_order():
    assert DeliveryStatus.PENDING.rank < DeliveryStatus.SENT.rank < DeliveryStatus.SEEN.rank
    assert DeliveryStatus.SEEN.lower_states() == ['PENDING', 'SENT']
    assert DeliveryStatus.SENT.lower_states() == ['PENDING']
    assert DeliveryStatus.PENDING.lower_states() == []


def test_status_parse():
    assert DeliveryStatus.parse('seen') is DeliveryStatus.SEEN
    with pytest.raises(ValidationError):
        DeliveryStatus.parse('DELIVERED')


def test_build_content_picks_variant():
    assert build_content('text', 'hello') == Text('hello')
    assert build_content('recorded_audio', 'a1.m4a') == RecordedAudio('a1.m4a')
    assert build_content('captured_image', 'x.jpg') != RecordedAudio('x.jpg')


@pytest.mark.parametrize('raw', ['', '   ', None, 42])
def test_build_content_rejects_empty_values(raw):
    with pytest.raises(ValidationError):
        build_content('text', raw)


def test_message_wire_form():
    created = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    message = Message('m1', CapturedImage('pic.jpg'), 'a@x.io', 'b@x.io', created, DeliveryStatus.SENT)

    assert message.to_dict() == {
        'id': 'm1',
        'content': 'pic.jpg',
        'type': 'captured_image',
        'sentBy': 'a@x.io',
        'sentTo': 'b@x.io',
        'timestamp': '2024-01-02T03:04:05+00:00',
        'deliveryStatus': 'SENT',
        'deleteFor': [],
    }


def test_message_db_doc_round_trip_treats_naive_dates_as_utc():
    message = Message('m2', Text('hi'), 'a', 'b', datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
    doc = message.to_db_doc()
    assert doc['_id'] == 'm2'
    assert doc['delivery_status'] == 'PENDING'

    # pymongo hands back naive UTC datetimes by default
    doc['created_at'] = doc['created_at'].replace(tzinfo=None)
    restored = Message.from_doc(doc)
    assert restored.content == Text('hi')
    assert restored.to_dict()['timestamp'] == '2024-05-01T12:00:00+00:00'
