"""
QR Code Controller

Administrator endpoints for the check-in code registry and for issuing the
short-lived tokens displayed at each code.
"""

from app.schemas.qr_schema import (
    CreateQRCodeSchema,
    IssueTokenQuerySchema,
    ListQRCodeQuerySchema,
    QRCodeStatusSchema,
)
from app.services import qr_code_service
from app.services.wiring import get_services, request_now
from app.utils.auth import current_identity
from app.utils.http import ok, json_body, request_data, validate_schema

_create_schema = CreateQRCodeSchema()
_status_schema = QRCodeStatusSchema()
_list_query_schema = ListQRCodeQuerySchema()
_token_query_schema = IssueTokenQuerySchema()


def create_qr_code_handler():
    now = request_now()
    data = validate_schema(_create_schema, json_body())
    code = qr_code_service.create_qr_code(
        current_identity(),
        name=data["name"],
        now=now,
        location=data["location"],
        description=data["description"],
    )
    return ok(code, 201)


def list_qr_codes_handler():
    data = validate_schema(_list_query_schema, request_data())
    return ok(qr_code_service.list_qr_codes(status=data["status"], page=data["page"], limit=data["limit"]))


def set_qr_code_status_handler(qr_code_id: int):
    data = validate_schema(_status_schema, json_body())
    return ok(qr_code_service.set_qr_code_status(current_identity(), qr_code_id, data["status"]))


def issue_token_handler(qr_code_id: int):
    now = request_now()
    data = validate_schema(_token_query_schema, request_data())

    token = get_services().tokens.issue_token(qr_code_id, now, ttl_seconds=data["ttl"])
    payload = token.to_dict()
    if data["image"]:
        payload["image_base64"] = qr_code_service.render_png_base64(token.token)
    return ok(payload)
