"""WebSocket module for real-time communication.

This module provides:
- WebSocket Hub (connection lifecycle and presence binding)
- Event Emitter for pushes and roster broadcasts
- Chat handler binding the chat event vocabulary
"""

from dm_server.websocket.event_emitter import EventEmitter
from dm_server.websocket.hub import WebSocketHub, init_websocket_hub

__all__ = ['EventEmitter', 'WebSocketHub', 'init_websocket_hub']
