"""Centralized WebSocket Hub.

Owns the connection lifecycle: a connection starts anonymous, becomes an
identity in the presence registry when it identifies, and leaves the
registry when it disconnects. Chat events are bound by the chat handler.
"""
import logging
from typing import Any, Optional

from flask import Flask, request
from flask_socketio import SocketIO, emit

from config import config
from dm_server.exception.UnauthorizedError import UnauthorizedError
from dm_server.messaging.presence import PresenceRegistry, get_presence_registry
from dm_server.security.authentication import AuthSecurity
from dm_server.websocket.event_emitter import EventEmitter, set_socketio, set_registry

logger = logging.getLogger(__name__)


class WebSocketHub:
    """Binds Socket.IO connections to identities in the presence registry."""

    def __init__(self, socketio: SocketIO = None, registry: Optional[PresenceRegistry] = None):
        self.socketio = socketio
        self.registry = registry or get_presence_registry()
        self._chat_handler = None

    def init_app(self, app: Flask, socketio: SocketIO):
        """Initialize the WebSocket hub."""
        logger.debug("WS_HUB: init app=%s, mode=%s", app.name, getattr(socketio, 'async_mode', '?'))

        self.socketio = socketio
        self.app = app

        set_socketio(socketio)
        set_registry(self.registry)
        self.registry.set_listener(EventEmitter.broadcast_roster)

        self._register_handlers()
        self._init_chat_handler()

        logger.debug("WS_HUB: initialized")

    def _init_chat_handler(self):
        from dm_server.websocket.handlers.chat_handler import init_chat_handler
        self._chat_handler = init_chat_handler(self.socketio, self.registry)

    def _register_handlers(self):
        """Register WebSocket lifecycle handlers."""

        @self.socketio.on_error_default
        def default_error_handler(e):
            logger.error("WS error: %s", e)

        # =====================================================================
        # Connection Events
        # =====================================================================

        @self.socketio.on('connect')
        def handle_connect(auth=None):
            """Accept the connection; bind it at once if it presented a valid token."""
            socket_id = getattr(request, 'sid', None)
            logger.debug("WS connect: sid=%s, ip=%s", socket_id, request.remote_addr)

            token = auth.get('token') if isinstance(auth, dict) else None
            if token:
                identity = self._authenticate(token)
                if identity:
                    self.registry.register(identity, socket_id)
            return True

        @self.socketio.on('disconnect')
        def handle_disconnect(*args):
            socket_id = request.sid
            identity = self.registry.unregister(socket_id)
            if identity:
                logger.info("WS offline: %s (sid=%s)", identity, socket_id)

        @self.socketio.on(EventEmitter.PRESENCE_IDENTIFY)
        def handle_identify(data=None):
            """Register the connection under the announced identity.

            Data: identity string, {"identity"|"email": str} or {"token": jwt}.
            """
            socket_id = request.sid
            identity = self._resolve_identity(data)
            if not identity:
                error = UnauthorizedError('Identity could not be resolved').to_dict()
                emit(EventEmitter.ERROR, error)
                return {'success': False, 'error': error}

            self.registry.register(identity, socket_id)
            logger.info("WS identified: %s (sid=%s)", identity, socket_id)
            return {'success': True, 'identity': identity}

    def _resolve_identity(self, data: Any) -> Optional[str]:
        token = data.get('token') if isinstance(data, dict) else None
        if token:
            return self._authenticate(token)
        if config.SOCKET_REQUIRE_AUTH:
            return None
        if isinstance(data, dict):
            data = data.get('identity') or data.get('email')
        if isinstance(data, str) and data.strip():
            return data.strip()
        return None

    def _authenticate(self, token: str) -> Optional[str]:
        try:
            return AuthSecurity.identity_from_token(token)
        except UnauthorizedError as e:
            logger.debug("WS auth error: %s", e)
            return None


# Singleton instance
_hub_instance: Optional[WebSocketHub] = None


def init_websocket_hub(app: Flask, socketio: SocketIO, registry: Optional[PresenceRegistry] = None) -> WebSocketHub:
    """Initialize a hub for ``app`` and make it the process singleton."""
    global _hub_instance
    _hub_instance = WebSocketHub(socketio, registry)
    _hub_instance.init_app(app, socketio)
    return _hub_instance
