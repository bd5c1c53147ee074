"""Centralized Event Emitter for real-time WebSocket communication.

Every server-initiated push goes through here. Targets are resolved through
the presence registry, so a push reaches at most one connection per identity.

Usage:
    from dm_server.websocket.event_emitter import EventEmitter

    # Push to a user if they are online
    EventEmitter.emit_to_user(identity, EventEmitter.MESSAGE_READ, {'id': message_id})

    # Broadcast to every connection
    EventEmitter.broadcast(EventEmitter.PRESENCE_ROSTER, roster)
"""
import logging
from typing import Any, Optional

from dm_server.messaging.models import ContentType
from dm_server.messaging.presence import PresenceRegistry, get_presence_registry

logger = logging.getLogger(__name__)

# Will be set when WebSocket hub initializes
_socketio = None
_registry: Optional[PresenceRegistry] = None


def set_socketio(socketio_instance):
    """Set the Socket.IO instance for the event emitter."""
    global _socketio
    _socketio = socketio_instance
    logger.debug("EventEmitter initialized with Socket.IO instance")


def set_registry(registry: PresenceRegistry):
    global _registry
    _registry = registry


def _get_registry() -> PresenceRegistry:
    return _registry if _registry is not None else get_presence_registry()


class EventEmitter:
    """Centralized event emitter for all real-time events."""

    # =========================================================================
    # Event Type Constants
    # =========================================================================

    # Presence Events
    PRESENCE_IDENTIFY = 'presence:identify'
    PRESENCE_ROSTER = 'presence:roster'

    # Chat Events
    MESSAGE_SEND_PREFIX = 'chat:send:'
    MESSAGE_NEW_PREFIX = 'chat:message:'
    MESSAGE_MARK_READ = 'chat:read'
    MESSAGE_READ = 'chat:message:read'
    MESSAGE_MARK_ALL_READ = 'chat:read_all'
    MESSAGE_READ_ALL = 'chat:message:read_all'
    MESSAGE_HIDE = 'chat:hide'

    # Ephemeral signal Events
    TYPING = 'chat:typing'
    RECORDING_AUDIO = 'chat:recording:audio'
    RECORDING_VIDEO = 'chat:recording:video'

    ERROR = 'chat:error'

    @staticmethod
    def send_event(content_type: ContentType) -> str:
        """Client -> server submission event for a content variant."""
        return EventEmitter.MESSAGE_SEND_PREFIX + ContentType.parse(content_type).value

    @staticmethod
    def delivered_event(content_type: ContentType) -> str:
        """Server -> recipient push event for a content variant."""
        return EventEmitter.MESSAGE_NEW_PREFIX + ContentType.parse(content_type).value

    # =========================================================================
    # Emit Methods
    # =========================================================================

    @staticmethod
    def emit_to_sid(sid: str, event: str, data: Any) -> bool:
        """Fire-and-forget emit to one connection. Never raises."""
        if not _socketio:
            logger.error("EVENT_EMITTER: Socket.IO NOT initialized, cannot emit %s", event)
            return False
        try:
            _socketio.emit(event, data, to=sid)
        except Exception as e:
            logger.warning("EVENT_EMITTER: Error emitting %s to socket %s: %s", event, sid, e)
            return False
        logger.debug("EVENT_EMITTER: Emitted '%s' to socket %s", event, sid)
        return True

    @staticmethod
    def emit_to_user(identity: str, event: str, data: Any) -> bool:
        """Emit event to the connection currently registered for ``identity``.

        Returns:
            True if the user was online and the emit was handed to Socket.IO
        """
        sid = _get_registry().lookup(identity)
        if sid is None:
            logger.debug("EVENT_EMITTER: %s not connected, event %s not delivered", identity, event)
            return False
        return EventEmitter.emit_to_sid(sid, event, data)

    @staticmethod
    def broadcast(event: str, data: Any) -> bool:
        """Emit event to every connected client."""
        if not _socketio:
            logger.error("EVENT_EMITTER: Socket.IO NOT initialized, cannot broadcast %s", event)
            return False
        try:
            _socketio.emit(event, data)
        except Exception as e:
            logger.warning("EVENT_EMITTER: Error broadcasting %s: %s", event, e)
            return False
        return True

    @staticmethod
    def broadcast_roster(roster) -> bool:
        """Send the full online roster to everyone."""
        return EventEmitter.broadcast(EventEmitter.PRESENCE_ROSTER, sorted(roster))
