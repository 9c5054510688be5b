import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError

from app.routers.deps import client_address, require_bearer, require_identity
from app.schemas.tokens import IdentityData, LoginData, LoginResponse, VerifyResponse
from app.schemas.users import (
    LoginRequest,
    MessageResponse,
    ProfileEnvelope,
    RegisterRequest,
)
from app.services.authority import Identity, session_authority
from app.services.errors import StorageError
from app.services.events import database_change, event_emitter, user_activity
from app.services.passwords import hash_password, verify_password
from app.services.users import AccountExistsError, account_store

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED
)
def register(payload: RegisterRequest, request: Request) -> MessageResponse:
    try:
        account_id = account_store.insert_account(
            payload.email,
            hash_password(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
    except AccountExistsError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except SQLAlchemyError as exc:
        LOGGER.error("Register failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration failed",
        ) from exc

    LOGGER.info("User registered: user_id=%s email=%s", account_id, payload.email)
    event_emitter.publish(
        user_activity("REGISTER", account_id, client_address(request), email=payload.email)
    )
    event_emitter.publish(database_change("INSERT", "users", userId=account_id))
    return MessageResponse(message="User registered")


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, request: Request) -> LoginResponse:
    ip = client_address(request)
    try:
        account = account_store.find_by_email(payload.email)
    except SQLAlchemyError as exc:
        LOGGER.error("Login failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed",
        ) from exc

    if account is None:
        LOGGER.warning("Login: email not found ip=%s", ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    if not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is inactive",
        )
    if not verify_password(payload.password, account.password):
        LOGGER.warning("Login: bad password user_id=%s ip=%s", account.id, ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    # mark_login first: a failure must not leave a live session behind.
    try:
        account_store.mark_login(account.id)
        issued = session_authority.issue(account.id, client_address=ip, email=account.email)
    except (StorageError, SQLAlchemyError) as exc:
        LOGGER.error("Login failed for user_id=%s: %s", account.id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed",
        ) from exc

    return LoginResponse(
        data=LoginData(
            token=issued.token,
            expires_at=issued.expires_at,
            user=account_store.to_summary(account),
        )
    )


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, token: str = Depends(require_bearer)) -> MessageResponse:
    try:
        session_authority.revoke(token, client_address=client_address(request))
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Logout failed",
        ) from exc
    return MessageResponse(message="Logout successful")


@router.get("/profile", response_model=ProfileEnvelope)
def profile(identity: Identity = Depends(require_identity)) -> ProfileEnvelope:
    try:
        account = account_store.get_account(identity.account_id)
    except SQLAlchemyError as exc:
        LOGGER.error("Profile failed for user_id=%s: %s", identity.account_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get user profile",
        ) from exc
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return ProfileEnvelope(data=account_store.to_profile(account))


@router.get("/verify", response_model=VerifyResponse)
def verify(identity: Identity = Depends(require_identity)) -> VerifyResponse:
    return VerifyResponse(
        data=IdentityData(account_id=identity.account_id, email=identity.email)
    )
