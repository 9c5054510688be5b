from datetime import datetime, timezone
import logging

from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.models.db_operation import (
    _add_record,
    _get_record,
    _select_one_or_none,
    _update_records,
)
from app.models.schema.account import AccountEntry
from app.schemas.users import ProfileResponse, UserSummary
from app.services.passwords import hash_password

LOGGER = logging.getLogger(__name__)


class AccountExistsError(ValueError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class AccountStore:
    def find_by_email(self, email: str) -> AccountEntry | None:
        return _select_one_or_none("account", email=email)

    def get_account(self, account_id: int) -> AccountEntry | None:
        return _get_record("account", account_id)

    def insert_account(
        self,
        email: str,
        digest: str,
        first_name: str | None = None,
        last_name: str | None = None,
        is_active: bool = True,
    ) -> int:
        if self.find_by_email(email) is not None:
            raise AccountExistsError("User already exists")
        now = _utcnow()
        try:
            entry = _add_record(
                "account",
                email=email,
                password=digest,
                first_name=_clean_optional(first_name),
                last_name=_clean_optional(last_name),
                is_active=is_active,
                last_login=None,
                created_at=now,
                updated_at=now,
            )
        except IntegrityError as exc:
            # Lost a race with a concurrent registration of the same email.
            raise AccountExistsError("User already exists") from exc
        return entry.id

    def mark_login(self, account_id: int) -> None:
        now = _utcnow()
        _update_records(
            "account", values={"last_login": now, "updated_at": now}, id=account_id
        )

    def set_active(self, account_id: int, active: bool) -> bool:
        updated = _update_records(
            "account",
            values={"is_active": active, "updated_at": _utcnow()},
            id=account_id,
        )
        return updated > 0

    def ensure_seed_account(self) -> int | None:
        if not settings.seed_email or not settings.seed_password:
            return None
        existing = self.find_by_email(settings.seed_email)
        if existing is not None:
            return existing.id
        account_id = self.insert_account(
            settings.seed_email,
            hash_password(settings.seed_password),
            first_name=settings.seed_first_name or None,
            last_name=settings.seed_last_name or None,
        )
        LOGGER.info("Seed account created: id=%s email=%s", account_id, settings.seed_email)
        return account_id

    def to_summary(self, entry: AccountEntry) -> UserSummary:
        return UserSummary(
            id=entry.id,
            email=entry.email,
            first_name=entry.first_name,
            last_name=entry.last_name,
        )

    def to_profile(self, entry: AccountEntry) -> ProfileResponse:
        return ProfileResponse(
            id=entry.id,
            email=entry.email,
            first_name=entry.first_name,
            last_name=entry.last_name,
            created_at=entry.created_at,
            last_login=entry.last_login,
        )


account_store = AccountStore()
