from flask import Blueprint
from app.utils.auth import require_admin
from app.controllers.admin_dining_controller import (
    admin_confirm_handler,
    admin_batch_confirm_handler,
    stats_handler,
)
from app.controllers.qr_controller import (
    create_qr_code_handler,
    list_qr_codes_handler,
    set_qr_code_status_handler,
    issue_token_handler,
)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

@admin_bp.route("/dining/orders/<int:id>/confirm", methods=["POST"])
@require_admin
def confirm_order(id):
    return admin_confirm_handler(id)

@admin_bp.route("/dining/orders/confirm-batch", methods=["POST"])
@require_admin
def confirm_batch():
    return admin_batch_confirm_handler()

@admin_bp.route("/dining/stats", methods=["GET"])
@require_admin
def dining_stats():
    return stats_handler()

# QR codes

@admin_bp.route("/qr-codes", methods=["POST"])
@require_admin
def create_qr_code():
    return create_qr_code_handler()

@admin_bp.route("/qr-codes", methods=["GET"])
@require_admin
def list_qr_codes():
    return list_qr_codes_handler()

@admin_bp.route("/qr-codes/<int:id>/status", methods=["PUT"])
@require_admin
def set_qr_code_status(id):
    return set_qr_code_status_handler(id)

@admin_bp.route("/qr-codes/<int:id>/token", methods=["GET"])
@require_admin
def issue_qr_token(id):
    return issue_token_handler(id)
