"""Delivery coordinator.

Turns inbound submissions and read signals into store writes and pushes,
driving each message through PENDING -> SENT -> SEEN.

Submission:
1. validate the payload for its content variant
2. insert the record as PENDING
3. advance it to SENT (whether or not the recipient is online)
4. push it to the recipient's connection if one is registered
5. acknowledge the sender with the resulting status

A failure in steps 1-3 aborts the submission: nothing is pushed and the
sender receives a failure acknowledgment. Store failures are reported, not
retried.
"""
import logging
from typing import Optional, Dict, Any

from dm_server.exception.MessagingError import (
    MessagingError, UnknownMessageError, ValidationError
)
from dm_server.messaging.models import Message, ContentType, DeliveryStatus, build_content
from dm_server.messaging.repository import MessageRepository, get_message_repository
from dm_server.utils.generator import generate_message_id
from dm_server.utils.validation import validate_message_payload
from dm_server.websocket.event_emitter import EventEmitter

logger = logging.getLogger(__name__)


def failure_ack(error: MessagingError) -> Dict[str, Any]:
    return {'success': False, 'error': error.to_dict()}


class MessagingService:
    """High-level messaging service."""

    def __init__(self, repo: Optional[MessageRepository] = None, emitter=EventEmitter):
        self._repo = repo
        self.emitter = emitter

    @property
    def repo(self) -> MessageRepository:
        if self._repo is None:
            self._repo = get_message_repository()
        return self._repo

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, content_type: ContentType, data: Any, connection_identity: Optional[str] = None) -> Dict[str, Any]:
        """Persist and relay one message; returns the sender's acknowledgment."""
        try:
            content_type = ContentType.parse(content_type)
            fields = validate_message_payload(content_type, data, connection_identity)
            message = Message(
                message_id=fields['message_id'] or generate_message_id(),
                content=build_content(content_type, fields['content']),
                sender=fields['sender'],
                recipient=fields['recipient'],
                created_at=fields['created_at'],
                delivery_status=DeliveryStatus.PENDING
            )

            if not self.repo.insert_message(message):
                return self._ack_resubmission(message)

            self.repo.advance_status(message.message_id, DeliveryStatus.SENT)
            message.delivery_status = DeliveryStatus.SENT
        except ValidationError as e:
            logger.warning("DELIVERY: rejected %s submission: %s", content_type, e)
            return failure_ack(e)
        except MessagingError as e:
            logger.error("DELIVERY: submission failed: %s", e)
            return failure_ack(e)

        payload = message.to_dict()
        pushed = self.emitter.emit_to_user(
            message.recipient, EventEmitter.delivered_event(content_type), payload
        )
        logger.info(
            "DELIVERY: message %s %s -> %s accepted (%s)",
            message.message_id, message.sender, message.recipient,
            'pushed' if pushed else 'recipient offline'
        )
        return {'success': True, 'status': DeliveryStatus.SENT.value, 'message': payload}

    def _ack_resubmission(self, message: Message) -> Dict[str, Any]:
        """A client retried with an identity the store already holds."""
        existing = self.repo.get_message(message.message_id)
        if existing is None:
            raise UnknownMessageError(f"Message {message.message_id} vanished during resubmission")
        if existing.sender != message.sender:
            raise ValidationError(f"id {message.message_id} is already in use")
        if existing.delivery_status is DeliveryStatus.PENDING:
            if self.repo.advance_status(existing.message_id, DeliveryStatus.SENT):
                existing.delivery_status = DeliveryStatus.SENT
                # the aborted first attempt never pushed it
                self.emitter.emit_to_user(
                    existing.recipient, EventEmitter.delivered_event(existing.content_type), existing.to_dict()
                )
            else:
                existing = self.repo.get_message(existing.message_id) or existing
        return {
            'success': True,
            'status': existing.delivery_status.value,
            'message': existing.to_dict(),
            'duplicate': True
        }

    # =========================================================================
    # Read receipts
    # =========================================================================

    def mark_read(self, message_id: Any, reader: Optional[str] = None) -> Dict[str, Any]:
        """Move one message to SEEN and tell its sender.

        Unknown identities are a benign no-op. Repeating the call leaves the
        record at SEEN and does not notify the sender again.
        """
        if not isinstance(message_id, str) or not message_id.strip():
            return failure_ack(ValidationError('id is required'))
        try:
            message = self.repo.get_message(message_id)
            if message is None:
                logger.debug("DELIVERY: read receipt for unknown message %s ignored", message_id)
                return {'success': True, 'status': None}
            if reader and reader != message.recipient:
                raise ValidationError('Only the recipient can mark a message as read')

            transitioned = self.repo.advance_status(message_id, DeliveryStatus.SEEN)
        except MessagingError as e:
            logger.warning("DELIVERY: mark_read %s failed: %s", message_id, e)
            return failure_ack(e)

        if transitioned:
            self.emitter.emit_to_user(message.sender, EventEmitter.MESSAGE_READ, {
                'id': message_id,
                'deliveryStatus': DeliveryStatus.SEEN.value
            })
        return {'success': True, 'status': DeliveryStatus.SEEN.value}

    def mark_all_read(self, me: Any, counterpart: Any, reader: Optional[str] = None) -> Dict[str, Any]:
        """Recipient opened the conversation: every unseen message from ``counterpart`` becomes SEEN."""
        if not isinstance(me, str) or not me.strip() or not isinstance(counterpart, str) or not counterpart.strip():
            return failure_ack(ValidationError('me and counterpart are required'))
        if reader and reader != me:
            return failure_ack(ValidationError('me does not match the identified connection'))
        try:
            updated = self.repo.mark_all_seen(me, counterpart)
        except MessagingError as e:
            logger.warning("DELIVERY: mark_all_read %s <- %s failed: %s", me, counterpart, e)
            return failure_ack(e)

        if updated:
            self.emitter.emit_to_user(
                counterpart, EventEmitter.MESSAGE_READ_ALL, [m.to_dict() for m in updated]
            )
        logger.debug("DELIVERY: %s marked %d message(s) from %s as seen", me, len(updated), counterpart)
        return {'success': True, 'count': len(updated)}

    # =========================================================================
    # Hide
    # =========================================================================

    def hide(self, message_id: Any, identity: Any) -> Dict[str, Any]:
        """Hide a message from ``identity``'s own history; the other party is unaffected."""
        if not isinstance(message_id, str) or not message_id.strip():
            return failure_ack(ValidationError('id is required'))
        if not isinstance(identity, str) or not identity.strip():
            return failure_ack(ValidationError('identity is required'))
        try:
            if not self.repo.hide_message(message_id, identity):
                raise UnknownMessageError(f"No message {message_id} for {identity}")
        except MessagingError as e:
            return failure_ack(e)
        return {'success': True, 'id': message_id}


# Singleton instance
_messaging_service: Optional[MessagingService] = None


def get_messaging_service() -> MessagingService:
    global _messaging_service
    if _messaging_service is None:
        _messaging_service = MessagingService()
    return _messaging_service


def set_messaging_service(service: Optional[MessagingService]):
    global _messaging_service
    _messaging_service = service
