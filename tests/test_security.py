"""
Tests for password hashing and token signing
"""
from infracity_api.app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)

USER = {"id": 42, "email": "planner@example.com", "role": "city_planner"}


def test_password_roundtrip():
    hashed = hash_password("s3cret-pass")

    assert "$" in hashed
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong-pass", hashed)


def test_password_hashes_are_salted():
    assert hash_password("same") != hash_password("same")


def test_verify_malformed_hash():
    assert not verify_password("anything", "not-a-hash")


def test_access_token_claims():
    payload = decode_access_token(create_access_token(USER))

    assert payload["sub"] == "42"
    assert payload["email"] == "planner@example.com"
    assert payload["role"] == "city_planner"
    assert payload["type"] == "access"


def test_expired_token_rejected():
    assert decode_access_token(create_access_token(USER, expires_delta=-10)) is None


def test_tampered_token_rejected():
    header, payload, signature = create_access_token(USER).split(".")
    forged = create_access_token({**USER, "role": "admin"}).split(".")[1]

    assert decode_access_token(f"{header}.{forged}.{signature}") is None
    assert decode_access_token("garbage") is None


def test_token_kinds_are_not_interchangeable():
    access = create_access_token(USER)
    refresh = create_refresh_token(USER)

    assert decode_refresh_token(access) is None
    assert decode_access_token(refresh) is None
    assert decode_refresh_token(refresh)["type"] == "refresh"


def test_tokens_are_unique():
    assert create_refresh_token(USER) != create_refresh_token(USER)
