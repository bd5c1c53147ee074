"""Real-time direct messaging core.

- models: messages, content variants and the PENDING -> SENT -> SEEN lifecycle
- presence: in-memory identity -> connection registry
- repository: Mongo-backed message store
- service: delivery coordinator
- signals: typing / recording indicator relay

Only the dependency-free pieces are re-exported here; import the repository,
service and relay from their modules.
"""

from dm_server.messaging.models import (
    Message, ContentType, DeliveryStatus, Content, Text, BlobContent,
    RecordedAudio, UploadedAudio, RecordedVideo, UploadedImage, CapturedImage,
    build_content
)
from dm_server.messaging.presence import PresenceRegistry, get_presence_registry

__all__ = [
    'Message', 'ContentType', 'DeliveryStatus', 'Content', 'Text', 'BlobContent',
    'RecordedAudio', 'UploadedAudio', 'RecordedVideo', 'UploadedImage', 'CapturedImage',
    'build_content',
    'PresenceRegistry', 'get_presence_registry',
]
