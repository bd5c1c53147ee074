"""WebSocket Chat Handler.

Binds the real-time chat vocabulary to the delivery coordinator and the
signal relay. REST is only used for history loading and uploads.

Real-time operations:
- chat:send:<type> -> ack {success, status} ; chat:message:<type> to recipient
- chat:read -> ack ; chat:message:read to sender
- chat:read_all -> ack {count} ; chat:message:read_all to counterpart
- chat:hide -> ack
- chat:typing / chat:recording:audio / chat:recording:video -> relayed as-is

Handlers never raise: failures come back to the caller as
{"success": false, "error": {code, message}}.
"""
import logging
from typing import Any, Optional

from flask import request

from dm_server.messaging.models import ContentType
from dm_server.messaging.presence import PresenceRegistry
from dm_server.messaging.service import get_messaging_service
from dm_server.messaging.signals import SignalRelay, SignalKind
from dm_server.websocket.event_emitter import EventEmitter

logger = logging.getLogger(__name__)


def _field(data: Any, *names) -> Any:
    if not isinstance(data, dict):
        return None
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


class ChatHandler:
    """Handler for WebSocket chat events."""

    def __init__(self, socketio, registry: PresenceRegistry, relay: Optional[SignalRelay] = None):
        """Initialize chat handler.

        Args:
            socketio: Flask-SocketIO instance
            registry: presence registry the hub maintains
            relay: indicator relay (defaults to one using EventEmitter)
        """
        self.socketio = socketio
        self.registry = registry
        self.relay = relay or SignalRelay()

    @property
    def service(self):
        return get_messaging_service()

    def _current_identity(self) -> Optional[str]:
        return self.registry.identity_of(request.sid)

    def register_handlers(self):
        """Register all chat WebSocket event handlers."""

        # =====================================================================
        # Message Events
        # =====================================================================

        for content_type in ContentType:
            self._register_submit(content_type)

        @self.socketio.on(EventEmitter.MESSAGE_MARK_READ)
        def handle_mark_read(data=None):
            """Data: {id: str} or the bare message id."""
            message_id = data if isinstance(data, str) else _field(data, 'id', 'messageId')
            return self.service.mark_read(message_id, reader=self._current_identity())

        @self.socketio.on(EventEmitter.MESSAGE_MARK_ALL_READ)
        def handle_mark_all_read(data=None):
            """Data: {me: str, counterpart: str}."""
            return self.service.mark_all_read(
                _field(data, 'me'),
                _field(data, 'counterpart', 'other'),
                reader=self._current_identity()
            )

        @self.socketio.on(EventEmitter.MESSAGE_HIDE)
        def handle_hide(data=None):
            """Data: {id: str, identity: str}; identity defaults to the connection's."""
            identity = self._current_identity() or _field(data, 'identity', 'deleteFor')
            return self.service.hide(_field(data, 'id', 'messageId'), identity)

        # =====================================================================
        # Typing / recording indicators
        # =====================================================================

        for kind in SignalKind:
            self._register_signal(kind)

    def _register_submit(self, content_type: ContentType):
        def handle_submit(data=None):
            return self.service.submit(content_type, data, connection_identity=self._current_identity())

        self.socketio.on_event(EventEmitter.send_event(content_type), handle_submit)

    def _register_signal(self, kind: SignalKind):
        def handle_signal(data=None):
            self.relay.relay(kind, data)

        self.socketio.on_event(kind.event, handle_signal)


# Singleton instance
_chat_handler: Optional[ChatHandler] = None


def get_chat_handler() -> Optional[ChatHandler]:
    """Get chat handler instance."""
    return _chat_handler


def init_chat_handler(socketio, registry: PresenceRegistry) -> ChatHandler:
    """Initialize chat handler with socketio instance."""
    global _chat_handler
    _chat_handler = ChatHandler(socketio, registry)
    _chat_handler.register_handlers()
    logger.info("Chat handler initialized")
    return _chat_handler
