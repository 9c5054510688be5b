"""Session issuance, verification and revocation.

Verification has two phases. The signed token proves authenticity and
carries its own expiry; the ledger row decides liveness. A token whose row
was revoked is rejected even if its embedded expiry is still ahead.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings, settings
from app.services.errors import AuthErrorKind, AuthFailure, StorageError
from app.services.events import (
    EventEmitter,
    database_change,
    event_emitter,
    user_activity,
)
from app.services.sessions import SessionLedger, session_ledger
from app.services.tokens import TokenCodec, TokenExpired, TokenInvalid, token_codec

LOGGER = logging.getLogger(__name__)

TOKENS_TABLE = "user_tokens"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    token_id: int
    expires_at: datetime


@dataclass(frozen=True)
class Identity:
    account_id: int
    token_id: int
    email: str


class SessionAuthority:
    def __init__(
        self,
        config: Settings,
        codec: TokenCodec,
        ledger: SessionLedger,
        emitter: EventEmitter,
        touch_executor: Optional[Executor] = None,
    ) -> None:
        self._ttl = config.token_ttl
        self._codec = codec
        self._ledger = ledger
        self._emitter = emitter
        self._touch_executor = touch_executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="token-touch"
        )

    def issue(
        self,
        account_id: int,
        client_address: Optional[str] = None,
        email: Optional[str] = None,
    ) -> IssuedToken:
        issued_at = _utcnow().replace(microsecond=0)
        expires_at = issued_at + self._ttl
        token = self._codec.sign(account_id, issued_at, self._ttl)
        try:
            token_id = self._ledger.insert(account_id, token, expires_at)
        except SQLAlchemyError as exc:
            LOGGER.error("Token ledger insert failed for user %s: %s", account_id, exc)
            raise StorageError("Failed to record session") from exc

        LOGGER.info(
            "User login: user_id=%s token_id=%s ip=%s expires_at=%s",
            account_id,
            token_id,
            client_address,
            expires_at.isoformat(),
        )
        extra = {"email": email} if email else {}
        self._emitter.publish(user_activity("LOGIN", account_id, client_address, **extra))
        self._emitter.publish(database_change("INSERT", TOKENS_TABLE, userId=account_id))
        return IssuedToken(token=token, token_id=token_id, expires_at=expires_at)

    def verify(self, token: str, client_address: Optional[str] = None) -> Identity:
        try:
            claims = self._codec.verify(token)
        except TokenExpired as exc:
            LOGGER.warning("JWT verify failed: reason=expired ip=%s", client_address)
            raise AuthFailure(AuthErrorKind.EXPIRED) from exc
        except TokenInvalid as exc:
            LOGGER.warning("JWT verify failed: reason=invalid ip=%s", client_address)
            raise AuthFailure(AuthErrorKind.INVALID) from exc

        try:
            found = self._ledger.find_live_by_token(token)
        except SQLAlchemyError as exc:
            LOGGER.error("Token ledger lookup failed: %s ip=%s", exc, client_address)
            raise AuthFailure(AuthErrorKind.STORAGE_ERROR) from exc

        if found is None:
            LOGGER.warning(
                "Token not live in ledger: user_id=%s ip=%s",
                claims.subject_id,
                client_address,
            )
            raise AuthFailure(AuthErrorKind.REVOKED_OR_UNKNOWN)

        entry, account = found
        if not account.is_active:
            LOGGER.warning(
                "Inactive user used token: user_id=%s ip=%s", account.id, client_address
            )
            raise AuthFailure(AuthErrorKind.ACCOUNT_INACTIVE)

        self._schedule_touch(entry.id)
        return Identity(account_id=account.id, token_id=entry.id, email=account.email)

    def revoke(self, token: str, client_address: Optional[str] = None) -> None:
        try:
            owner = self._ledger.owner_of(token)
            revoked = self._ledger.revoke(token)
        except SQLAlchemyError as exc:
            LOGGER.error("Token revoke failed: %s ip=%s", exc, client_address)
            raise StorageError("Failed to revoke session") from exc

        if not revoked or owner is None:
            LOGGER.info("Logout for unknown or already revoked token ip=%s", client_address)
            return

        account_id, email = owner
        LOGGER.info("User logout: user_id=%s ip=%s", account_id, client_address)
        self._emitter.publish(
            user_activity("LOGOUT", account_id, client_address, email=email)
        )
        self._emitter.publish(database_change("UPDATE", TOKENS_TABLE, userId=account_id))

    def close(self) -> None:
        self._touch_executor.shutdown(wait=False)

    def _schedule_touch(self, token_id: int) -> None:
        try:
            self._touch_executor.submit(self._touch, token_id)
        except RuntimeError as exc:
            # Executor already shut down.
            LOGGER.warning("Failed to schedule last_used update for token %s: %s", token_id, exc)

    def _touch(self, token_id: int) -> None:
        try:
            self._ledger.touch_last_used(token_id)
        except Exception as exc:
            LOGGER.warning("Failed to update last_used for token %s: %s", token_id, exc)


session_authority = SessionAuthority(settings, token_codec, session_ledger, event_emitter)
