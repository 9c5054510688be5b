from fastapi import Header, Request

from app.services.authority import Identity, session_authority
from app.services.errors import AuthErrorKind, AuthFailure

BEARER_PREFIX = "Bearer "


def client_address(request: Request) -> str | None:
    return request.client.host if request.client else None


def bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthFailure(AuthErrorKind.MISSING)
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthFailure(AuthErrorKind.MISSING)
    return token


def require_bearer(authorization: str | None = Header(default=None)) -> str:
    return bearer_token(authorization)


def require_identity(
    request: Request, authorization: str | None = Header(default=None)
) -> Identity:
    token = bearer_token(authorization)
    identity = session_authority.verify(token, client_address=client_address(request))
    request.state.identity = identity
    return identity
