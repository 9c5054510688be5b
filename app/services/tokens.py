from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import secrets

import jwt

from app.config import settings


class TokenError(ValueError):
    pass


class TokenInvalid(TokenError):
    pass


class TokenExpired(TokenError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    subject_id: int
    issued_at: datetime
    expires_at: datetime


class TokenCodec:
    """Signs and checks session tokens. Holds no state beyond its key."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        if not secret:
            raise TokenError("JWT secret is not configured")
        self._secret = secret
        self._algorithm = algorithm

    def sign(self, subject_id: int, issued_at: datetime, ttl: timedelta) -> str:
        expires_at = issued_at + ttl
        payload = {
            "sub": str(subject_id),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        if not token:
            raise TokenInvalid("Token is missing")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenInvalid("Invalid token") from exc
        return TokenClaims(
            subject_id=_parse_subject(payload),
            issued_at=_from_timestamp(payload["iat"]),
            expires_at=_from_timestamp(payload["exp"]),
        )


def _parse_subject(payload: dict) -> int:
    subject = payload.get("sub")
    if not subject:
        raise TokenInvalid("Token subject is missing")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise TokenInvalid("Invalid token subject") from exc


def _from_timestamp(value) -> datetime:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError) as exc:
        raise TokenInvalid("Invalid token timestamp") from exc


token_codec = TokenCodec(settings.jwt_secret, settings.jwt_algorithm)
