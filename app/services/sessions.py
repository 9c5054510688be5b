from datetime import datetime, timezone

from sqlalchemy import select

from app.database import session_scope
from app.models.db_operation import _add_record, _update_records
from app.models.schema.account import AccountEntry
from app.models.schema.token import TokenEntry


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionLedger:
    """Persistent record of every issued token.

    Rows are never deleted here. ``is_valid`` only ever goes from true to
    false and ``expires_at`` is written once, at insert.
    """

    def insert(self, account_id: int, token: str, expires_at: datetime) -> int:
        now = _utcnow()
        entry = _add_record(
            "token",
            user_id=account_id,
            token=token,
            is_valid=True,
            last_used=None,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )
        return entry.id

    def find_live_by_token(
        self, token: str
    ) -> tuple[TokenEntry, AccountEntry] | None:
        now = _utcnow()
        with session_scope() as session:
            row = session.execute(
                select(TokenEntry, AccountEntry)
                .join(AccountEntry, AccountEntry.id == TokenEntry.user_id)
                .where(
                    TokenEntry.token == token,
                    TokenEntry.is_valid.is_(True),
                    TokenEntry.expires_at > now,
                )
            ).first()
            if row is None:
                return None
            return row[0], row[1]

    def owner_of(self, token: str) -> tuple[int, str] | None:
        """Account id and email behind a token, whatever its state."""
        with session_scope() as session:
            row = session.execute(
                select(TokenEntry.user_id, AccountEntry.email)
                .join(AccountEntry, AccountEntry.id == TokenEntry.user_id)
                .where(TokenEntry.token == token)
            ).first()
            if row is None:
                return None
            return row.user_id, row.email

    def revoke(self, token: str) -> int:
        return _update_records(
            "token",
            values={"is_valid": False, "updated_at": _utcnow()},
            token=token,
            is_valid=True,
        )

    def touch_last_used(self, token_id: int) -> None:
        _update_records("token", values={"last_used": _utcnow()}, id=token_id)


session_ledger = SessionLedger()
