"""
QR Code Service

Registry of the physical check-in codes (one per canteen entrance or counter)
and PNG rendering of their signed tokens.
"""

import base64
import datetime as dt
import logging
import secrets
from io import BytesIO
from typing import Any, Dict, Optional

import qrcode

from app.extensions import db
from app.models.qr_code import QRCode
from app.utils.auth import Identity
from app.utils.enums import QRCodeStatus
from app.utils.errors import DiningError, ErrorCode
from app.utils.timeutil import isoformat_utc

logger = logging.getLogger(__name__)


def serialize_qr_code(code: QRCode) -> Dict[str, Any]:
    return {
        "id": code.id,
        "code": code.code,
        "name": code.name,
        "location": code.location,
        "description": code.description,
        "status": code.status,
        "created_by": code.created_by,
        "created_at": isoformat_utc(code.created_at),
        "updated_at": isoformat_utc(code.updated_at),
    }


def _new_code(now: dt.datetime) -> str:
    return f"DINING_QR_{now.strftime('%Y%m%d%H%M%S')}_{secrets.token_hex(4).upper()}"


def create_qr_code(
    actor: Identity,
    name: str,
    now: dt.datetime,
    location: Optional[str] = None,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    code = QRCode(
        code=_new_code(now),
        name=name,
        location=location,
        description=description,
        status=QRCodeStatus.ACTIVE.value,
        created_by=actor.user_id,
        created_at=now,
        updated_at=now,
    )
    db.session.add(code)
    db.session.commit()
    logger.info("QR code %s (%s) created by user %s", code.id, code.code, actor.user_id)
    return serialize_qr_code(code)


def list_qr_codes(status: Optional[str] = None, page: int = 1, limit: int = 50) -> Dict[str, Any]:
    query = QRCode.query
    if status:
        query = query.filter(QRCode.status == status)
    query = query.order_by(QRCode.created_at.desc(), QRCode.id.desc())

    pagination = query.paginate(page=page, per_page=limit, error_out=False)
    return {
        "items": [serialize_qr_code(c) for c in pagination.items],
        "total": pagination.total,
        "page": page,
        "limit": limit,
        "pages": pagination.pages,
    }


def set_qr_code_status(actor: Identity, qr_code_id: int, status: str) -> Dict[str, Any]:
    """Deactivating a code revokes every token already issued for it."""
    code = db.session.get(QRCode, qr_code_id)
    if code is None:
        raise DiningError(ErrorCode.QR_CODE_NOT_FOUND, qr_code_id=qr_code_id)

    code.status = QRCodeStatus(status).value
    db.session.commit()
    logger.info("QR code %s set to %s by user %s", qr_code_id, code.status, actor.user_id)
    return serialize_qr_code(code)


def render_png_base64(data: str) -> str:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode()
