"""Messaging data models for one-to-one chat delivery.

Collections:
- chat_messages: every message ever submitted, keyed by message identity
- users: registered profiles (see dm_server.repository.user_repository)

Presence is never persisted; see dm_server.messaging.presence.
"""
from typing import Optional, Dict, Any, Iterable, List
from datetime import datetime, timezone
from enum import Enum

from dm_server.exception.MessagingError import ValidationError


class ContentType(str, Enum):
    TEXT = "text"
    RECORDED_AUDIO = "recorded_audio"
    UPLOADED_AUDIO = "uploaded_audio"
    RECORDED_VIDEO = "recorded_video"
    UPLOADED_IMAGE = "uploaded_image"
    CAPTURED_IMAGE = "captured_image"

    @classmethod
    def parse(cls, value: Any) -> 'ContentType':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown content type: {value!r}")

    @property
    def is_media(self) -> bool:
        return self is not ContentType.TEXT


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"    # Record written, not yet confirmed
    SENT = "SENT"          # Accepted by the server
    SEEN = "SEEN"          # Recipient read it (terminal)

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def lower_states(self):
        """Statuses a record may hold and still move forward to this one."""
        return [s.value for s in _STATUS_ORDER[:self.rank]]

    @classmethod
    def parse(cls, value: Any) -> 'DeliveryStatus':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValidationError(f"Unknown delivery status: {value!r}")


_STATUS_ORDER = [DeliveryStatus.PENDING, DeliveryStatus.SENT, DeliveryStatus.SEEN]


# =============================================================================
# Content variants
# =============================================================================

class Content:
    """A message payload; one subclass per content tag."""
    content_type: ContentType = None

    @property
    def raw(self) -> str:
        raise NotImplementedError

    def __eq__(self, other):
        return type(self) is type(other) and self.raw == other.raw

    def __repr__(self):
        return f"{type(self).__name__}({self.raw!r})"


class Text(Content):
    content_type = ContentType.TEXT

    def __init__(self, body: str):
        self.body = body

    @property
    def raw(self) -> str:
        return self.body


class BlobContent(Content):
    """Reference to a binary previously stored by the blob storage."""

    def __init__(self, blob_ref: str):
        self.blob_ref = blob_ref

    @property
    def raw(self) -> str:
        return self.blob_ref


class RecordedAudio(BlobContent):
    content_type = ContentType.RECORDED_AUDIO


class UploadedAudio(BlobContent):
    content_type = ContentType.UPLOADED_AUDIO


class RecordedVideo(BlobContent):
    content_type = ContentType.RECORDED_VIDEO


class UploadedImage(BlobContent):
    content_type = ContentType.UPLOADED_IMAGE


class CapturedImage(BlobContent):
    content_type = ContentType.CAPTURED_IMAGE


CONTENT_CLASSES = {
    cls.content_type: cls
    for cls in (Text, RecordedAudio, UploadedAudio, RecordedVideo, UploadedImage, CapturedImage)
}


def build_content(content_type: Any, raw: Any) -> Content:
    """Build the variant for ``content_type`` from its wire value."""
    tag = ContentType.parse(content_type)
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(f"content is required for {tag.value} messages")
    return CONTENT_CLASSES[tag](raw)


def _hidden_list(value: Any) -> List[str]:
    """Identities a message is hidden for, without duplicates; a bare string is one identity."""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(dict.fromkeys(value))


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class Message:
    """Message document structure."""

    def __init__(
        self,
        message_id: str,
        content: Content,
        sender: str,
        recipient: str,
        created_at: Optional[datetime] = None,
        delivery_status: DeliveryStatus = DeliveryStatus.PENDING,
        hidden_for: Optional[Iterable[str]] = None
    ):
        self.message_id = message_id
        self.content = content
        self.sender = sender
        self.recipient = recipient
        self.created_at = created_at or datetime.now(timezone.utc)
        self.delivery_status = DeliveryStatus.parse(delivery_status)
        self.hidden_for = _hidden_list(hidden_for)

    @property
    def content_type(self) -> ContentType:
        return self.content.content_type

    def to_dict(self) -> Dict[str, Any]:
        """Wire form shared by pushes, acks and history responses."""
        return {
            'id': self.message_id,
            'content': self.content.raw,
            'type': self.content_type.value,
            'sentBy': self.sender,
            'sentTo': self.recipient,
            'timestamp': _iso(self.created_at),
            'deliveryStatus': self.delivery_status.value,
            'deleteFor': list(self.hidden_for)
        }

    def to_db_doc(self) -> Dict[str, Any]:
        return {
            '_id': self.message_id,
            'message_id': self.message_id,
            'content': self.content.raw,
            'content_type': self.content_type.value,
            'sender': self.sender,
            'recipient': self.recipient,
            'created_at': self.created_at,
            'delivery_status': self.delivery_status.value,
            'hidden_for': list(self.hidden_for)
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> 'Message':
        return cls(
            message_id=doc.get('message_id') or str(doc.get('_id')),
            content=build_content(doc.get('content_type', ContentType.TEXT), doc.get('content')),
            sender=doc.get('sender'),
            recipient=doc.get('recipient'),
            created_at=doc.get('created_at'),
            delivery_status=doc.get('delivery_status', DeliveryStatus.PENDING),
            hidden_for=doc.get('hidden_for')
        )
