from app.schemas.dining_schema import BatchConfirmSchema, ConfirmOrderSchema, StatsQuerySchema
from app.services.wiring import get_services, request_now
from app.utils.auth import current_identity
from app.utils.http import ok, json_body, request_data, validate_schema

_confirm_schema = ConfirmOrderSchema()
_batch_confirm_schema = BatchConfirmSchema()
_stats_query_schema = StatsQuerySchema()


def admin_confirm_handler(order_id: int):
    now = request_now()
    data = validate_schema(_confirm_schema, json_body())
    result = get_services().engine.confirm_admin(current_identity(), order_id, now, remark=data["remark"])
    return ok(result.to_dict())


def admin_batch_confirm_handler():
    now = request_now()
    data = validate_schema(_batch_confirm_schema, json_body())
    report = get_services().engine.batch_confirm_admin(
        current_identity(), data["order_ids"], now, remark=data["remark"]
    )
    return ok(report.to_dict())


def stats_handler():
    now = request_now()
    data = validate_schema(_stats_query_schema, request_data())
    stats = get_services().status.daily_stats(
        current_identity(), now, day=data["date"], department_id=data["department_id"]
    )
    return ok(stats)
