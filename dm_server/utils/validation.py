import re
from typing import Any, Dict, Optional

from dm_server.exception.MessagingError import ValidationError
from dm_server.messaging.models import ContentType, DeliveryStatus
from dm_server.utils.helpers import parse_iso_or_epoch

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def _field(data: Dict[str, Any], *names) -> Any:
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return None


def _identity(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def validate_message_payload(content_type: ContentType, data: Any, connection_identity: Optional[str] = None) -> Dict[str, Any]:
    """Check an inbound submission and return its normalized fields.

    Accepts the camelCase keys the mobile client sends (sentBy/sentTo) as well
    as sender/recipient. Raises ValidationError naming the first bad field.
    """
    if not isinstance(data, dict):
        raise ValidationError('Message payload must be an object')

    sender = _identity(_field(data, 'sentBy', 'sender'))
    recipient = _identity(_field(data, 'sentTo', 'recipient'))
    if not sender:
        raise ValidationError('sentBy is required')
    if not recipient:
        raise ValidationError('sentTo is required')
    if connection_identity and sender != connection_identity:
        raise ValidationError('sentBy does not match the identified connection')

    declared_type = data.get('type')
    if declared_type is not None and ContentType.parse(declared_type) is not content_type:
        raise ValidationError(f"type {declared_type!r} does not match channel {content_type.value!r}")

    content = data.get('content')
    if not isinstance(content, str) or not content.strip():
        raise ValidationError('content is required')

    message_id = data.get('id')
    if message_id is not None and (not isinstance(message_id, str) or not message_id.strip()):
        raise ValidationError('id must be a non-empty string')

    status = _field(data, 'deliveryStatus', 'delieveryStatus', 'status')
    if status is not None:
        DeliveryStatus.parse(status)

    raw_ts = data.get('timestamp')
    created_at = parse_iso_or_epoch(raw_ts)
    if raw_ts not in (None, '') and created_at is None:
        raise ValidationError('timestamp is not a valid date')

    return {
        'message_id': message_id.strip() if message_id else None,
        'sender': sender,
        'recipient': recipient,
        'content': content,
        'created_at': created_at,
    }


def validate_signal_payload(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    return bool(_identity(_field(data, 'sentBy', 'sender')) and _identity(_field(data, 'sentTo', 'recipient')))


def validate_register(data):
    errors = {}
    if not data.get('name') or not str(data.get('name')).strip():
        errors['name'] = 'Name is required.'
    email = data.get('email')
    if not email or not EMAIL_RE.match(str(email).strip()):
        errors['email'] = 'A valid email is required.'
    if not data.get('password') or not str(data.get('password')).strip():
        errors['password'] = 'Password is required.'
    if not (data.get('imageUrl') or data.get('image_url')):
        errors['imageUrl'] = 'Profile image is required.'
    return (len(errors) == 0, errors)


def validate_login(data):
    errors = {}
    if not data.get('email') or not str(data.get('email')).strip():
        errors['email'] = 'Email is required.'
    if not data.get('password'):
        errors['password'] = 'Password is required.'
    return (len(errors) == 0, errors)
