"""
Dining Controller

Member-facing endpoints: ordering (single, batch, on behalf of department
members), cancellation, self-confirmation, QR check-in and status views.
Each handler reads ``now`` once and passes it down.
"""

from flask import current_app

from app.schemas.dining_schema import (
    BatchOrderSchema,
    CreateOrderSchema,
    DepartmentOrderSchema,
    OrderHistoryQuerySchema,
    DeptMembersQuerySchema,
    ScanHistoryQuerySchema,
    ScanSchema,
    StatusQuerySchema,
)
from app.services import dining_status_service
from app.services.order_registrar import serialize_order
from app.services.wiring import get_services, request_now
from app.utils.auth import current_identity, resolve_scanner_identity
from app.utils.http import ok, json_body, request_data, validate_schema

_create_order_schema = CreateOrderSchema()
_batch_order_schema = BatchOrderSchema()
_department_order_schema = DepartmentOrderSchema()
_history_query_schema = OrderHistoryQuerySchema()
_scan_schema = ScanSchema()
_status_query_schema = StatusQuerySchema()
_scan_history_query_schema = ScanHistoryQuerySchema()
_dept_members_query_schema = DeptMembersQuerySchema()


# Ordering

def create_order_handler():
    now = request_now()
    actor = current_identity()
    data = validate_schema(_create_order_schema, json_body())

    order = get_services().registrar.submit_order(
        actor,
        dining_date=data["date"],
        meal_type=data["meal_type"],
        remark=data["remark"],
        now=now,
        allow_past=data["allow_past"],
    )
    return ok(serialize_order(order), 201)


def batch_order_handler():
    now = request_now()
    actor = current_identity()
    data = validate_schema(_batch_order_schema, json_body())

    report = get_services().registrar.submit_batch(actor, data["items"], now, allow_past=data["allow_past"])
    return ok(report.to_dict())


def department_order_handler():
    now = request_now()
    actor = current_identity()
    data = validate_schema(_department_order_schema, json_body())

    report = get_services().registrar.submit_on_behalf(
        actor,
        dining_date=data["date"],
        meal_type=data["meal_type"],
        member_ids=data["member_ids"],
        remark=data["remark"],
        now=now,
        allow_past=data["allow_past"],
    )
    return ok(report.to_dict())


def list_orders_handler():
    data = validate_schema(_history_query_schema, request_data())
    result = dining_status_service.order_history(
        current_identity(),
        page=data["page"],
        limit=data["limit"],
        day=data["date"],
        start_date=data["start_date"],
        end_date=data["end_date"],
        state=data["state"],
        meal_type=data["meal_type"],
    )
    return ok(result)


# Lifecycle

def cancel_order_handler(order_id: int):
    now = request_now()
    order = get_services().engine.cancel(current_identity(), order_id, now)
    return ok(serialize_order(order))


def confirm_order_handler(order_id: int):
    now = request_now()
    result = get_services().engine.confirm_manual(current_identity(), order_id, now)
    return ok(result.to_dict())


def scan_handler():
    now = request_now()
    actor = resolve_scanner_identity()
    data = validate_schema(_scan_schema, request_data())

    result = get_services().engine.confirm_scan(
        actor,
        data["token"],
        now,
        claimed_meal_type=data["meal_type"],
        device_info=data["device_info"],
    )
    current_app.logger.debug("Scan handled for user %s", actor.user_id)
    return ok(result.to_dict())


# Views

def status_handler():
    now = request_now()
    data = validate_schema(_status_query_schema, request_data())
    return ok(get_services().status.personal_status(current_identity(), now, day=data["date"]))


def scan_history_handler():
    data = validate_schema(_scan_history_query_schema, request_data())
    result = dining_status_service.scan_history(
        current_identity(),
        page=data["page"],
        limit=data["limit"],
        start_date=data["start_date"],
        end_date=data["end_date"],
    )
    return ok(result)


def dept_members_handler():
    data = validate_schema(_dept_members_query_schema, request_data())
    department_id = data["department_id"]
    members = dining_status_service.department_members(current_identity(), department_id=department_id)
    return ok({"items": members, "total": len(members)})
