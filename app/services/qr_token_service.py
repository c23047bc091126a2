"""
QR Token Service

Issues and verifies the short-lived signed tokens printed into check-in QR
codes. A token names a registered QR code and an expiry; it is a PyJWT HS256
token so it cannot be forged or edited without the signing key.

Verification never raises: it answers with a ``TokenVerification`` whose
``reason`` is one of TOKEN_TAMPERED, TOKEN_EXPIRED or TOKEN_REVOKED, checked in
that order.
"""

import datetime as dt
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt

from app.extensions import db
from app.models.qr_code import QRCode
from app.utils.errors import DiningError, ErrorCode
from app.utils.timeutil import UTC, isoformat_utc, to_utc

logger = logging.getLogger(__name__)

TOKEN_TYPE = "dining_qr"
ALGORITHM = "HS256"


@dataclass(frozen=True)
class SecureToken:
    token: str
    qr_code_id: int
    issued_at: dt.datetime
    expires_at: dt.datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "qr_code_id": self.qr_code_id,
            "issued_at": isoformat_utc(self.issued_at),
            "expires_at": isoformat_utc(self.expires_at),
        }


@dataclass(frozen=True)
class TokenVerification:
    valid: bool
    qr_code_id: Optional[int] = None
    reason: Optional[ErrorCode] = None
    expires_at: Optional[dt.datetime] = None

    def raise_for_reason(self) -> int:
        if not self.valid:
            raise DiningError(self.reason)
        return self.qr_code_id


class QRTokenService:
    def __init__(self, secret: str, ttl_seconds: int = 300, max_ttl_seconds: int = 3600):
        if not secret:
            raise ValueError("QR token secret is not configured")
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self.max_ttl_seconds = max_ttl_seconds

    def issue_token(self, qr_code_id: int, now: dt.datetime, ttl_seconds: Optional[int] = None) -> SecureToken:
        code = db.session.get(QRCode, qr_code_id)
        if code is None:
            raise DiningError(ErrorCode.QR_CODE_NOT_FOUND, qr_code_id=qr_code_id)
        if not code.is_active:
            raise DiningError(ErrorCode.QR_CODE_INACTIVE, qr_code_id=qr_code_id)

        ttl = ttl_seconds or self.ttl_seconds
        if ttl < 1 or ttl > self.max_ttl_seconds:
            raise DiningError(
                ErrorCode.VALIDATION_ERROR,
                f"ttl must be between 1 and {self.max_ttl_seconds} seconds",
            )

        # JWT timestamps are whole seconds; keep issued_at/expires_at consistent with the claims
        issued_at = to_utc(now).replace(microsecond=0)
        expires_at = issued_at + dt.timedelta(seconds=ttl)
        payload = {
            "sub": str(qr_code_id),
            "typ": TOKEN_TYPE,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(payload, self.secret, algorithm=ALGORITHM)
        logger.debug("Issued QR token for code %s valid until %s", qr_code_id, expires_at)
        return SecureToken(token=token, qr_code_id=qr_code_id, issued_at=issued_at, expires_at=expires_at)

    def _decode(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                # Expiry is judged against the caller's ``now``, not the system clock
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["exp", "iat", "sub"],
                },
            )
        except jwt.InvalidTokenError:
            return None
        if payload.get("typ") != TOKEN_TYPE:
            return None
        return payload

    def verify_token(self, token: Optional[str], now: dt.datetime) -> TokenVerification:
        payload = self._decode(token) if token else None
        if payload is None:
            return TokenVerification(valid=False, reason=ErrorCode.TOKEN_TAMPERED)

        try:
            qr_code_id = int(payload["sub"])
            expires_at = dt.datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
        except (TypeError, ValueError):
            return TokenVerification(valid=False, reason=ErrorCode.TOKEN_TAMPERED)

        if to_utc(now) >= expires_at:
            return TokenVerification(
                valid=False, qr_code_id=qr_code_id, reason=ErrorCode.TOKEN_EXPIRED, expires_at=expires_at
            )

        code = db.session.get(QRCode, qr_code_id)
        if code is None or not code.is_active:
            return TokenVerification(
                valid=False, qr_code_id=qr_code_id, reason=ErrorCode.TOKEN_REVOKED, expires_at=expires_at
            )

        return TokenVerification(valid=True, qr_code_id=qr_code_id, expires_at=expires_at)
