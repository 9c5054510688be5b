import bcrypt

from app.config import settings

# bcrypt only looks at the first 72 bytes of a password.
_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]


def hash_password(password: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, digest: str) -> bool:
    if not password or not digest:
        return False
    try:
        return bcrypt.checkpw(_encode(password), digest.encode("utf-8"))
    except ValueError:
        return False
