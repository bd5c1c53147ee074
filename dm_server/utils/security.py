"""Password hashing for the registration and login routes (bcrypt)."""
import bcrypt

from config import config


def hash_password(plain: str) -> str:
    if not isinstance(plain, str) or not plain:
        raise ValueError("Password must be a non-empty string")
    hashed = bcrypt.hashpw(plain.encode('utf-8'), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def verify_password(plain: str, hashed: str) -> bool:
    """True if ``plain`` matches the stored hash; malformed hashes never match."""
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        return False
