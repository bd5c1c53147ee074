import logging

from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from config import config

logger = logging.getLogger(__name__)


class MongoRepositorySingleton:
    _client = None
    _db_instance = None

    @classmethod
    def get_db(cls):
        """Singleton utility to get the MongoDB database object.

        Uses MONGO_URI / MONGO_DB from config. Every store call is bounded by
        MONGO_TIMEOUT_MS so an unresponsive server raises instead of hanging.
        """
        if cls._db_instance is not None:
            return cls._db_instance
        timeout = config.MONGO_TIMEOUT_MS
        logger.info("Connecting to MongoDB DB: %s (timeout %sms)", config.MONGO_DB_NAME, timeout)
        cls._client = MongoClient(
            config.MONGO_URI,
            serverSelectionTimeoutMS=timeout,
            connectTimeoutMS=timeout,
            socketTimeoutMS=timeout,
        )
        cls._db_instance = cls._client[config.MONGO_DB_NAME]
        return cls._db_instance

    @classmethod
    def set_db(cls, db):
        """Use an already-built database handle (tests, alternative runners)."""
        cls._db_instance = db

    @classmethod
    def get_collection(cls, collection_name, db=None):
        if db is None:
            db = cls.get_db()
        return db[collection_name]


def get_collection(collection_name):
    return MongoRepositorySingleton.get_collection(collection_name)


def ensure_indexes(db):
    """Create the indexes history, gallery and bulk-read queries rely on (idempotent)."""
    try:
        messages = db['chat_messages']
        messages.create_index(
            [('sender', ASCENDING), ('recipient', ASCENDING), ('created_at', DESCENDING)],
            name='chat_messages_pair_created_at'
        )
        messages.create_index(
            [('recipient', ASCENDING), ('delivery_status', ASCENDING)],
            name='chat_messages_recipient_status'
        )
        messages.create_index([('content_type', ASCENDING)], name='chat_messages_content_type')
        db['users'].create_index([('email', ASCENDING)], unique=True, name='users_email')
        logger.info('Ensured chat DB indexes')
    except PyMongoError as e:
        logger.exception('Error creating indexes: %s', e)
