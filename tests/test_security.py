from dataclasses import replace

import pytest
from jose import jwt

from movieapi.errors import AppError, ErrorKind
from movieapi.security import ACCESS, ALGORITHM, REFRESH, PasswordHasher, TokenService

IDENTITY = {"userId": "5a1e3b4c-9d2f-4e8a-b7c6-1f0e2d3c4b5a", "username": "neo", "role": "User"}


def test_password_hash_round_trip(hasher):
    hashed = hasher.hash("secret1")
    assert hasher.verify("secret1", hashed)
    assert not hasher.verify("secret2", hashed)


def test_garbage_hash_is_a_mismatch(hasher):
    assert hasher.verify("secret1", "not-a-bcrypt-hash") is False


def test_salt_rounds_are_applied():
    assert PasswordHasher(5).hash("secret1").split("$")[2] == "05"


def test_access_token_round_trip(tokens):
    claims = tokens.decode_access(tokens.issue(ACCESS, IDENTITY))
    assert claims["userId"] == IDENTITY["userId"]
    assert claims["role"] == "User"
    assert claims["type"] == ACCESS
    assert claims["exp"] - claims["iat"] == 3600


def test_tokens_issued_together_differ(tokens):
    assert tokens.issue(ACCESS, IDENTITY) != tokens.issue(ACCESS, IDENTITY)


def test_expired_access_token(settings):
    expired = TokenService(replace(settings, access_token_lifetime=-10))
    with pytest.raises(AppError) as info:
        expired.decode_access(expired.issue(ACCESS, IDENTITY))
    assert info.value.kind is ErrorKind.AUTH_EXPIRED_TOKEN


def test_foreign_signature_is_invalid(tokens):
    forged = jwt.encode({**IDENTITY, "type": ACCESS}, "someone-elses-secret", algorithm=ALGORITHM)
    with pytest.raises(AppError) as info:
        tokens.decode_access(forged)
    assert info.value.kind is ErrorKind.AUTH_INVALID_TOKEN


def test_refresh_token_is_not_an_access_token(tokens, settings):
    # signed with the access secret but typed as refresh
    mislabeled = jwt.encode({**IDENTITY, "type": REFRESH}, settings.jwt_secret, algorithm=ALGORITHM)
    with pytest.raises(AppError) as info:
        tokens.decode_access(mislabeled)
    assert info.value.kind is ErrorKind.AUTH_INVALID_TOKEN


def test_refresh_token_round_trip(tokens):
    claims = tokens.decode_refresh(tokens.issue(REFRESH, IDENTITY))
    assert {k: claims[k] for k in IDENTITY} == IDENTITY


@pytest.mark.parametrize("claims", [
    {"username": "neo", "role": "User"},
    {"userId": 42, "username": "neo", "role": "User"},
    {"userId": "abc", "username": "", "role": "User"},
])
def test_malformed_refresh_payload(tokens, settings, claims):
    token = jwt.encode({**claims, "type": REFRESH}, settings.refresh_secret, algorithm=ALGORITHM)
    with pytest.raises(AppError) as info:
        tokens.decode_refresh(token)
    assert info.value.kind is ErrorKind.AUTH_INVALID_REFRESH_TOKEN


def test_access_token_is_not_a_refresh_token(tokens):
    with pytest.raises(AppError) as info:
        tokens.decode_refresh(tokens.issue(ACCESS, IDENTITY))
    assert info.value.kind is ErrorKind.AUTH_INVALID_REFRESH_TOKEN
