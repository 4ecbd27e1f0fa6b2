"""
JWT session token creation and verification.

Tokens are compact JWTs (``header.payload.signature``, base64url without
padding) signed with HMAC-SHA256.  The payload carries the subject
(``sub``), issue time (``iat``, float seconds) and expiry (``exp``).  The
secret and lifetime come from the ``Settings`` object handed to
``TokenCodec``; no session state is kept on the server.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from config.settings import Settings
from utils.errors import InvalidTokenError

logger = logging.getLogger(__name__)

_HEADER = {"alg": "HS256", "typ": "JWT"}


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    issued_at: float
    expires_at: float


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(s: str) -> bytes:
    padding = -len(s) % 4
    return base64.urlsafe_b64decode(s + "=" * padding)


def _encode_segment(obj: dict) -> str:
    return _b64url_encode(json.dumps(obj, separators=(",", ":")).encode())


class TokenCodec:
    """Issue and verify signed session tokens."""

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time) -> None:
        self._secret = settings.jwt_secret.encode()
        self._expiry_seconds = settings.jwt_expiry_seconds
        self._clock = clock

    def _sign(self, signing_input: str) -> str:
        sig = hmac.new(self._secret, signing_input.encode("ascii"), hashlib.sha256).digest()
        return _b64url_encode(sig)

    def issue(self, user_id: str) -> str:
        """Create a signed token for ``user_id``."""
        # Same microsecond precision as the datetime columns it is compared with.
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc).timestamp()
        payload = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + self._expiry_seconds,
        }
        signing_input = f"{_encode_segment(_HEADER)}.{_encode_segment(payload)}"
        return f"{signing_input}.{self._sign(signing_input)}"

    def verify(self, token: str) -> TokenClaims:
        """
        Verify ``token`` and return its claims.

        Raises ``InvalidTokenError`` for malformed, forged or expired
        tokens; the reason is logged but never returned to the caller.
        """
        try:
            header_b64, payload_b64, signature = token.split(".")
            expected = self._sign(f"{header_b64}.{payload_b64}")
            if not hmac.compare_digest(signature, expected):
                raise ValueError("bad signature")
            header = json.loads(_b64url_decode(header_b64))
            if header.get("alg") != _HEADER["alg"]:
                raise ValueError("unexpected algorithm")
            payload = json.loads(_b64url_decode(payload_b64))
            claims = TokenClaims(
                subject=str(payload["sub"]),
                issued_at=float(payload["iat"]),
                expires_at=float(payload["exp"]),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.debug("Rejected session token: %s", exc)
            raise InvalidTokenError() from None

        if claims.expires_at <= self._clock():
            logger.debug("Rejected session token: expired")
            raise InvalidTokenError()
        return claims
