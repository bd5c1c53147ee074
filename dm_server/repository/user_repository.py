"""User profiles for the registration/login collaborator.

Stored in the ``users`` collection with a unique email.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from pymongo.errors import DuplicateKeyError, PyMongoError

from dm_server.exception.MessagingError import StoreUnavailableError
from dm_server.repository.mongo_helper import get_collection

logger = logging.getLogger(__name__)

_PUBLIC_PROJECTION = {'_id': 0, 'password': 0}


class UserRepository:
    """Repository for registered users."""

    def __init__(self, collection):
        self.collection = collection

    def create_user(self, name: str, email: str, password_hash: str, image_url: str) -> bool:
        """Insert a user; False if the email is already registered."""
        doc = {
            '_id': email,
            'name': name,
            'email': email,
            'password': password_hash,
            'image_url': image_url,
            'created_at': datetime.now(timezone.utc),
        }
        try:
            self.collection.insert_one(doc)
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            logger.exception("USER_STORE: create_user failed")
            raise StoreUnavailableError(f"User store unavailable: {e}") from e
        return True

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        try:
            return self.collection.find_one({'email': email})
        except PyMongoError as e:
            raise StoreUnavailableError(f"User store unavailable: {e}") from e

    def list_users(self, exclude: Optional[str] = None) -> List[Dict[str, Any]]:
        query = {'email': {'$ne': exclude}} if exclude else {}
        try:
            return list(self.collection.find(query, _PUBLIC_PROJECTION).sort('name', 1))
        except PyMongoError as e:
            raise StoreUnavailableError(f"User store unavailable: {e}") from e


# Module-level repository (lazy loaded)
_user_repo: Optional[UserRepository] = None


def get_user_repository() -> UserRepository:
    global _user_repo
    if _user_repo is None:
        _user_repo = UserRepository(get_collection('users'))
    return _user_repo


def reset_user_repository():
    global _user_repo
    _user_repo = None
