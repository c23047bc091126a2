from flask import Blueprint
from app.utils.auth import require_auth, require_admin
from app.controllers.dining_controller import (
    create_order_handler,
    batch_order_handler,
    department_order_handler,
    list_orders_handler,
    cancel_order_handler,
    confirm_order_handler,
    scan_handler,
    status_handler,
    scan_history_handler,
    dept_members_handler,
)

dining_bp = Blueprint("dining", __name__, url_prefix="/api/dining")

@dining_bp.post("/orders")
@require_auth
def create_order():
    return create_order_handler()

@dining_bp.get("/orders")
@require_auth
def list_orders():
    return list_orders_handler()

@dining_bp.post("/orders/batch")
@require_auth
def batch_order():
    return batch_order_handler()

@dining_bp.post("/orders/<int:id>/cancel")
@require_auth
def cancel_order(id):
    return cancel_order_handler(id)

@dining_bp.post("/orders/<int:id>/confirm")
@require_auth
def confirm_order(id):
    return confirm_order_handler(id)

# The scan handler resolves the scanner itself and answers IDENTITY_UNRESOLVED
@dining_bp.route("/scan", methods=["GET", "POST"])
def scan():
    return scan_handler()

@dining_bp.get("/status")
@require_auth
def status():
    return status_handler()

@dining_bp.get("/scan-history")
@require_auth
def scan_history():
    return scan_history_handler()

# Department administrators

@dining_bp.post("/department-orders")
@require_admin
def department_order():
    return department_order_handler()

@dining_bp.get("/dept-members")
@require_admin
def dept_members():
    return dept_members_handler()
