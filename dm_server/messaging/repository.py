"""Message store backed by the ``chat_messages`` collection.

Provides the operations the delivery core consumes:
- insert a new message
- point lookup / conditional status update by message identity
- batch "mark everything from this counterpart as seen"
- per-party hide (a message may be hidden for both parties)

and the read-only query shapes used by the history routes:
- conversation between two identities sorted by creation time
- the same, filtered by media content type

Every status write is conditional on the stored status being strictly lower
than the target, so a record never moves backwards along PENDING -> SENT -> SEEN.
Driver failures are re-raised as StoreUnavailableError.
"""
import functools
import logging
from typing import Optional, List, Iterable
from datetime import datetime, timezone

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from dm_server.exception.MessagingError import StoreUnavailableError
from dm_server.messaging.models import Message, ContentType, DeliveryStatus
from dm_server.repository.mongo_helper import get_collection
from dm_server.utils.generator import generate_batch_id

logger = logging.getLogger(__name__)

COLLECTION_NAME = 'chat_messages'


def _store_call(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PyMongoError as e:
            logger.exception("MESSAGE_STORE: %s failed", func.__name__)
            raise StoreUnavailableError(f"Message store unavailable: {e}") from e
    return wrapper


def _pair_query(me: str, counterpart: str) -> dict:
    return {
        '$or': [
            {'sender': me, 'recipient': counterpart},
            {'sender': counterpart, 'recipient': me},
        ],
        'hidden_for': {'$ne': me},
    }


class MessageRepository:
    """Repository for chat messages."""

    def __init__(self, collection):
        self.collection = collection

    # =========================================================================
    # Delivery operations
    # =========================================================================

    @_store_call
    def insert_message(self, message: Message) -> bool:
        """Insert a new record.

        Returns False when a record with the same identity already exists;
        the existing record is left untouched.
        """
        try:
            self.collection.insert_one(message.to_db_doc())
        except DuplicateKeyError:
            logger.info("MESSAGE_STORE: duplicate message id %s ignored", message.message_id)
            return False
        return True

    @_store_call
    def get_message(self, message_id: str) -> Optional[Message]:
        doc = self.collection.find_one({'_id': message_id})
        return Message.from_doc(doc) if doc else None

    @_store_call
    def advance_status(self, message_id: str, target: DeliveryStatus) -> bool:
        """Move one record forward to ``target``; True only if this call changed it."""
        update = {'delivery_status': target.value}
        if target is DeliveryStatus.SEEN:
            update['seen_at'] = datetime.now(timezone.utc)
        result = self.collection.update_one(
            {'_id': message_id, 'delivery_status': {'$in': target.lower_states()}},
            {'$set': update}
        )
        return result.modified_count > 0

    @_store_call
    def mark_all_seen(self, me: str, counterpart: str) -> List[Message]:
        """Flip every unseen message from ``counterpart`` to ``me`` to SEEN in one batch.

        The batch token written with the update identifies exactly the records
        this call transitioned, so a concurrent or repeated call never reports
        the same record twice.
        """
        batch_id = generate_batch_id()
        result = self.collection.update_many(
            {
                'sender': counterpart,
                'recipient': me,
                'delivery_status': {'$in': DeliveryStatus.SEEN.lower_states()},
            },
            {'$set': {
                'delivery_status': DeliveryStatus.SEEN.value,
                'seen_at': datetime.now(timezone.utc),
                'seen_batch': batch_id,
            }}
        )
        if not result.modified_count:
            return []
        cursor = self.collection.find({'seen_batch': batch_id}).sort('created_at', ASCENDING)
        return [Message.from_doc(doc) for doc in cursor]

    @_store_call
    def hide_message(self, message_id: str, identity: str) -> bool:
        """Hide a message for one of its two parties.

        ``hidden_for`` is a set of identities, so each party's hide is kept
        independently of the other's.
        """
        result = self.collection.update_one(
            {
                '_id': message_id,
                '$or': [{'sender': identity}, {'recipient': identity}],
            },
            {'$addToSet': {'hidden_for': identity}}
        )
        return result.matched_count > 0

    # =========================================================================
    # History queries
    # =========================================================================

    @_store_call
    def get_conversation_messages(
        self,
        me: str,
        counterpart: str,
        before: Optional[datetime] = None,
        limit: int = 0
    ) -> List[Message]:
        """Messages exchanged by the pair, oldest first, minus those hidden for ``me``."""
        query = _pair_query(me, counterpart)
        if before:
            query['created_at'] = {'$lt': before}
        cursor = self.collection.find(query).sort('created_at', DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        messages = [Message.from_doc(doc) for doc in cursor]
        messages.reverse()
        return messages

    @_store_call
    def get_media_messages(
        self,
        me: str,
        counterpart: str,
        content_types: Iterable[ContentType]
    ) -> List[Message]:
        query = _pair_query(me, counterpart)
        query['content_type'] = {'$in': [ContentType.parse(t).value for t in content_types]}
        cursor = self.collection.find(query).sort('created_at', ASCENDING)
        return [Message.from_doc(doc) for doc in cursor]


# Singleton instance
_message_repo: Optional[MessageRepository] = None


def get_message_repository() -> MessageRepository:
    """Get singleton message repository bound to the configured database."""
    global _message_repo
    if _message_repo is None:
        _message_repo = MessageRepository(get_collection(COLLECTION_NAME))
    return _message_repo


def reset_message_repository():
    """Drop the singleton (tests, reconnection)."""
    global _message_repo
    _message_repo = None
