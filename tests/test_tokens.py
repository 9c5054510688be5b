from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.services.tokens import TokenCodec, TokenError, TokenExpired, TokenInvalid

from conftest import TEST_SECRET


def _now():
    return datetime.now(timezone.utc).replace(microsecond=0)


def _flip_signature(token: str) -> str:
    header, payload, signature = token.split(".")
    first = "B" if signature[0] == "A" else "A"
    return f"{header}.{payload}.{first}{signature[1:]}"


def test_sign_and_verify_returns_claims(codec):
    issued_at = _now()
    token = codec.sign(42, issued_at, timedelta(hours=24))

    claims = codec.verify(token)

    assert claims.subject_id == 42
    assert claims.issued_at == issued_at
    assert claims.expires_at == issued_at + timedelta(hours=24)


def test_tokens_signed_in_the_same_second_differ(codec):
    issued_at = _now()
    first = codec.sign(7, issued_at, timedelta(hours=1))
    second = codec.sign(7, issued_at, timedelta(hours=1))

    assert first != second


def test_expired_token_is_reported_as_expired(codec):
    token = codec.sign(1, _now() - timedelta(hours=2), timedelta(hours=1))

    with pytest.raises(TokenExpired):
        codec.verify(token)


def test_flipped_signature_is_invalid(codec):
    token = codec.sign(1, _now(), timedelta(hours=1))

    with pytest.raises(TokenInvalid):
        codec.verify(_flip_signature(token))


def test_flipped_signature_on_expired_token_is_invalid_not_expired(codec):
    token = codec.sign(1, _now() - timedelta(hours=2), timedelta(hours=1))

    with pytest.raises(TokenInvalid):
        codec.verify(_flip_signature(token))


def test_token_from_another_secret_is_invalid(codec):
    other = TokenCodec("another-secret-with-enough-length-0123456789")
    token = other.sign(1, _now(), timedelta(hours=1))

    with pytest.raises(TokenInvalid):
        codec.verify(token)


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
def test_malformed_tokens_are_invalid(codec, token):
    with pytest.raises(TokenInvalid):
        codec.verify(token)


def test_non_numeric_subject_is_invalid(codec):
    now = _now()
    token = jwt.encode(
        {
            "sub": "someone",
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=1)).timestamp()),
        },
        TEST_SECRET,
        algorithm="HS256",
    )

    with pytest.raises(TokenInvalid):
        codec.verify(token)


def test_missing_expiry_is_invalid(codec):
    token = jwt.encode(
        {"sub": "1", "iat": int(_now().timestamp())}, TEST_SECRET, algorithm="HS256"
    )

    with pytest.raises(TokenInvalid):
        codec.verify(token)


def test_codec_requires_a_secret():
    with pytest.raises(TokenError):
        TokenCodec("")


def test_both_failures_are_token_errors():
    assert issubclass(TokenInvalid, TokenError)
    assert issubclass(TokenExpired, TokenError)
