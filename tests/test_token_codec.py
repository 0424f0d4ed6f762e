"""
Tests for signed email action tokens.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from slotbook.application.dto.booking_projection import BookingProjection
from slotbook.application.exceptions import TokenError
from slotbook.application.utils.token_codec import TokenCodec, _b64encode


ISSUED = datetime(2024, 5, 30, 12, 0, tzinfo=timezone.utc)


def _projection() -> BookingProjection:
    return BookingProjection(
        id="b-1",
        date=date(2024, 6, 1),
        hour=10,
        resource_id="court-3",
        contact="ada@example.com",
    )


def test_round_trip():
    """decode(encode(x)) returns the same projection."""
    codec = TokenCodec("secret")
    token = codec.encode(_projection(), issued_at=ISSUED)
    assert codec.decode(token) == _projection()


def test_token_is_url_safe():
    """Tokens go into query strings unescaped."""
    token = TokenCodec("secret").encode(_projection(), issued_at=ISSUED)
    assert all(c.isalnum() or c in "-_." for c in token)


@pytest.mark.parametrize("garbage", [None, "", "abc", "a.b", "a.b.c", ".sig", "body.", 42, "ü.ü"])
def test_garbage_is_rejected(garbage):
    """Anything that is not a well-formed signed token fails with TokenError."""
    with pytest.raises(TokenError):
        TokenCodec("secret").decode(garbage)


def test_tampered_payload_is_rejected():
    """Changing the body invalidates the signature."""
    codec = TokenCodec("secret")
    _, sig = codec.encode(_projection(), issued_at=ISSUED).split(".")
    forged = json.dumps({"id": "b-2", "date": "2024-06-01", "hour": 10, "resource_id": "court-3", "iat": 1})
    with pytest.raises(TokenError):
        codec.decode(f"{_b64encode(forged.encode())}.{sig}")


def test_other_secret_is_rejected():
    """A token minted with another secret does not verify."""
    token = TokenCodec("secret-a").encode(_projection(), issued_at=ISSUED)
    with pytest.raises(TokenError):
        TokenCodec("secret-b").decode(token)


def test_expired_token_is_rejected():
    """Tokens older than max_age are refused; younger ones pass."""
    codec = TokenCodec("secret", max_age=timedelta(days=14))
    token = codec.encode(_projection(), issued_at=ISSUED)

    assert codec.decode(token, now=ISSUED + timedelta(days=13)) == _projection()
    with pytest.raises(TokenError):
        codec.decode(token, now=ISSUED + timedelta(days=15))


def test_signed_but_wrong_shape_is_rejected():
    """A validly signed payload that is not a projection still fails cleanly."""
    codec = TokenCodec("secret")
    for payload in ([1, 2, 3], {"id": "b-1"}, {"id": "b-1", "date": "x", "hour": 10, "resource_id": "r", "iat": 1}):
        body = _b64encode(json.dumps(payload).encode("utf-8"))
        with pytest.raises(TokenError):
            codec.decode(f"{body}.{codec._sign(body)}")


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        TokenCodec("")
