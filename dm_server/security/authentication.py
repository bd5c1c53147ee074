from datetime import timedelta, datetime, timezone
from typing import Optional

from jose import jwt, JWTError, ExpiredSignatureError

from dm_server.exception.UnauthorizedError import UnauthorizedError


class AuthSecurity:
    secret_key = None
    algorithm = 'HS256'
    # Default: access token valid for 7 days
    access_token_expire_minutes = 7 * 24 * 60

    @classmethod
    def configure(cls, secret_key, algorithm='HS256', access_token_expire_minutes=7*24*60):
        cls.secret_key = secret_key
        cls.algorithm = algorithm
        cls.access_token_expire_minutes = access_token_expire_minutes

    @classmethod
    def encode_token(cls, data: dict, expires_delta: timedelta = None) -> str:
        if not cls.secret_key:
            raise RuntimeError('AuthSecurity is not configured with a secret key')
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=cls.access_token_expire_minutes))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, cls.secret_key, algorithm=cls.algorithm)

    @classmethod
    def decode_token(cls, token: str) -> dict:
        # Well-formed JWTs have exactly two dots
        if not token or not isinstance(token, str) or token.count('.') != 2:
            raise UnauthorizedError("Malformed or missing token. Please provide a valid JWT token in the Authorization header.")
        try:
            return jwt.decode(token, cls.secret_key, algorithms=[cls.algorithm])
        except ExpiredSignatureError:
            raise UnauthorizedError("Token expired. Please login again.")
        except JWTError as e:
            msg = str(e)
            if 'Signature verification failed' in msg:
                raise UnauthorizedError("Invalid token signature. Please login again.")
            raise UnauthorizedError(f"Invalid token: {msg}.")

    @classmethod
    def create_access_token(cls, email: str, name: Optional[str] = None) -> str:
        """Token whose ``email`` claim is the messaging identity."""
        payload = {'email': email, 'type': 'access'}
        if name:
            payload['name'] = name
        return cls.encode_token(payload)

    @classmethod
    def identity_from_token(cls, token: str) -> str:
        """Resolve the messaging identity carried by a credential."""
        payload = cls.decode_token(token)
        identity = payload.get('email')
        if not identity:
            raise UnauthorizedError('Token does not carry an identity')
        return identity


def get_auth_payload(request):
    """
    Extracts and decodes the Bearer token from the Authorization header in the request.
    Raises UnauthorizedError if missing or invalid.
    Returns the decoded payload.
    """
    auth_header = request.headers.get('Authorization')
    if not auth_header or not auth_header.startswith('Bearer '):
        raise UnauthorizedError('Missing or invalid token')
    token = auth_header.split(' ', 1)[1]
    return AuthSecurity.decode_token(token)
