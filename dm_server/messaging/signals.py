"""Ephemeral signal relay.

Typing and recording-in-progress indicators are forwarded verbatim to the
recipient's connection when it is registered and dropped otherwise. Nothing
is queued, persisted or acknowledged.
"""
import logging
from enum import Enum
from typing import Any

from dm_server.utils.validation import validate_signal_payload
from dm_server.websocket.event_emitter import EventEmitter

logger = logging.getLogger(__name__)


class SignalKind(str, Enum):
    TYPING = "typing"
    RECORDING_AUDIO = "recording_audio"
    RECORDING_VIDEO = "recording_video"

    @property
    def event(self) -> str:
        return SIGNAL_EVENTS[self]


SIGNAL_EVENTS = {
    SignalKind.TYPING: EventEmitter.TYPING,
    SignalKind.RECORDING_AUDIO: EventEmitter.RECORDING_AUDIO,
    SignalKind.RECORDING_VIDEO: EventEmitter.RECORDING_VIDEO,
}


class SignalRelay:
    """Stateless pass-through for indicator signals."""

    def __init__(self, emitter=EventEmitter):
        self.emitter = emitter

    def relay(self, kind: SignalKind, payload: Any) -> bool:
        """Forward ``payload`` on the channel for ``kind``; True if it reached a connection."""
        kind = SignalKind(kind)
        if not validate_signal_payload(payload):
            logger.debug("SIGNAL: malformed %s payload dropped", kind.value)
            return False
        recipient = (payload.get('sentTo') or payload.get('recipient')).strip()
        return self.emitter.emit_to_user(recipient, kind.event, payload)
