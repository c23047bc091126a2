import base64
import datetime as dt
import json

import jwt
import pytest

from app.extensions import db
from app.models.qr_code import QRCode
from app.utils.enums import QRCodeStatus
from app.utils.errors import DiningError, ErrorCode
from tests.helpers import TODAY, at


def _forge_subject(token: str, sub: str) -> str:
    header, payload, signature = token.split(".")
    claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
    claims["sub"] = sub
    forged = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()
    return ".".join([header, forged, signature])


def test_token_valid_until_expiry(services, world):
    issued = at(TODAY, "11:00")
    token = services.tokens.issue_token(world.qr.id, issued)

    assert token.expires_at - token.issued_at == dt.timedelta(seconds=300)

    ok = services.tokens.verify_token(token.token, issued + dt.timedelta(minutes=4, seconds=59))
    assert ok.valid
    assert ok.qr_code_id == world.qr.id

    at_expiry = services.tokens.verify_token(token.token, issued + dt.timedelta(minutes=5))
    assert not at_expiry.valid
    assert at_expiry.reason == ErrorCode.TOKEN_EXPIRED

    late = services.tokens.verify_token(token.token, issued + dt.timedelta(minutes=5, seconds=1))
    assert late.reason == ErrorCode.TOKEN_EXPIRED


def test_verification_is_idempotent(services, world):
    now = at(TODAY, "11:00")
    token = services.tokens.issue_token(world.qr.id, now)
    first = services.tokens.verify_token(token.token, now)
    second = services.tokens.verify_token(token.token, now)
    assert first == second


def test_edited_token_is_tampered(services, world):
    now = at(TODAY, "11:00")
    token = services.tokens.issue_token(world.qr.id, now)

    result = services.tokens.verify_token(_forge_subject(token.token, "999"), now)
    assert not result.valid
    assert result.reason == ErrorCode.TOKEN_TAMPERED


@pytest.mark.parametrize("raw", ["", "not-a-token", "a.b.c"])
def test_garbage_is_tampered(services, raw):
    result = services.tokens.verify_token(raw, at(TODAY, "11:00"))
    assert result.reason == ErrorCode.TOKEN_TAMPERED


def test_foreign_signature_and_type_are_tampered(services, world):
    now = at(TODAY, "11:00")
    claims = {
        "sub": str(world.qr.id),
        "typ": "dining_qr",
        "iat": int(now.timestamp()),
        "exp": int(now.timestamp()) + 300,
    }
    other_key = jwt.encode(claims, "some-other-secret", algorithm="HS256")
    wrong_type = jwt.encode({**claims, "typ": "session"}, "test-qr-secret", algorithm="HS256")

    assert services.tokens.verify_token(other_key, now).reason == ErrorCode.TOKEN_TAMPERED
    assert services.tokens.verify_token(wrong_type, now).reason == ErrorCode.TOKEN_TAMPERED


def test_tampering_is_reported_before_expiry(services, world):
    issued = at(TODAY, "11:00")
    token = services.tokens.issue_token(world.qr.id, issued)
    result = services.tokens.verify_token(_forge_subject(token.token, "999"), issued + dt.timedelta(hours=1))
    assert result.reason == ErrorCode.TOKEN_TAMPERED


def test_deactivated_code_revokes_token(services, world):
    now = at(TODAY, "11:00")
    token = services.tokens.issue_token(world.qr.id, now)

    world.qr.status = QRCodeStatus.INACTIVE.value
    db.session.commit()

    result = services.tokens.verify_token(token.token, now)
    assert not result.valid
    assert result.reason == ErrorCode.TOKEN_REVOKED


def test_issue_for_unknown_or_inactive_code(services, world):
    now = at(TODAY, "11:00")
    with pytest.raises(DiningError) as excinfo:
        services.tokens.issue_token(4242, now)
    assert excinfo.value.code == ErrorCode.QR_CODE_NOT_FOUND

    idle = QRCode(code="DINING_QR_IDLE", name="Side door", status=QRCodeStatus.INACTIVE.value)
    db.session.add(idle)
    db.session.commit()
    with pytest.raises(DiningError) as excinfo:
        services.tokens.issue_token(idle.id, now)
    assert excinfo.value.code == ErrorCode.QR_CODE_INACTIVE


def test_ttl_is_bounded(services, world):
    with pytest.raises(DiningError) as excinfo:
        services.tokens.issue_token(world.qr.id, at(TODAY, "11:00"), ttl_seconds=7200)
    assert excinfo.value.code == ErrorCode.VALIDATION_ERROR
