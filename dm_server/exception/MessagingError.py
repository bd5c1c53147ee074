"""Failure taxonomy for the delivery core.

Every error carries a short machine-readable ``code`` that is copied into the
failure acknowledgment sent back to the submitting client.
"""


class MessagingError(Exception):
    """Base class for delivery and store failures."""
    code = 'MESSAGING_ERROR'

    def __init__(self, message, code=None):
        super().__init__(message)
        if code:
            self.code = code

    def to_dict(self):
        return {'code': self.code, 'message': str(self)}


class ValidationError(MessagingError, ValueError):
    """Malformed submission; rejected before anything is persisted."""
    code = 'INVALID_DATA'


class StoreUnavailableError(MessagingError):
    """A persistence call failed or timed out."""
    code = 'STORE_UNAVAILABLE'


class UnknownMessageError(MessagingError):
    """No persisted record matches the given message identity."""
    code = 'NOT_FOUND'
