from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError as PydanticValidationError

from slotbook.application.dto.booking_projection import BookingProjection
from slotbook.application.exceptions import TokenError


logger = logging.getLogger(__name__)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


class TokenCodec:
    """
    Signed, reversible encoding of a BookingProjection for one-click email links.

    Token layout: ``<base64url(json payload)>.<base64url(hmac-sha256(payload))>``.
    The payload carries the projection plus an ``iat`` issue timestamp.
    """

    def __init__(self, secret: str, max_age: timedelta | None = None) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._key = secret.encode("utf-8")
        self._max_age = max_age

    def encode(self, projection: BookingProjection, issued_at: datetime | None = None) -> str:
        issued_at = issued_at or datetime.now(timezone.utc)
        payload = projection.model_dump(mode="json")
        payload["iat"] = int(issued_at.timestamp())
        body = _b64encode(json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8"))
        return f"{body}.{self._sign(body)}"

    def decode(self, token: object, now: datetime | None = None) -> BookingProjection:
        if not isinstance(token, str) or not token:
            raise TokenError("Token is missing")

        parts = token.split(".")
        if len(parts) != 2 or not all(parts):
            raise TokenError("Token is malformed")
        body, signature = parts

        if not hmac.compare_digest(self._sign(body).encode("ascii"), signature.encode("utf-8", errors="replace")):
            logger.warning("Rejected token with bad signature")
            raise TokenError("Token signature mismatch")

        try:
            payload = json.loads(_b64decode(body).decode("utf-8"))
        except ValueError as e:
            raise TokenError("Token payload is not valid JSON") from e

        if not isinstance(payload, dict):
            raise TokenError("Token payload has the wrong shape")

        issued_at = payload.pop("iat", None)
        if not isinstance(issued_at, int) or isinstance(issued_at, bool):
            raise TokenError("Token has no issue time")

        if self._max_age is not None:
            now = now or datetime.now(timezone.utc)
            if datetime.fromtimestamp(issued_at, timezone.utc) + self._max_age < now:
                raise TokenError("Token has expired")

        try:
            return BookingProjection.model_validate(payload)
        except PydanticValidationError as e:
            raise TokenError("Token payload failed validation") from e

    def _sign(self, body: str) -> str:
        digest = hmac.new(self._key, body.encode("ascii", errors="replace"), hashlib.sha256).digest()
        return _b64encode(digest)
