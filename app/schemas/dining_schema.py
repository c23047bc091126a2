from marshmallow import Schema, fields, validate, validates_schema, ValidationError
from app.utils.enums import MealType, OrderState

MEAL_CHOICES = [e.value for e in MealType]


class OrderItemSchema(Schema):
    date = fields.Date(required=True)
    meal_type = fields.Str(required=True, validate=validate.OneOf(MEAL_CHOICES))
    remark = fields.Str(allow_none=True, load_default=None, validate=validate.Length(max=500))


class CreateOrderSchema(OrderItemSchema):
    allow_past = fields.Bool(load_default=False)


class BatchOrderSchema(Schema):
    # Items are validated one by one so a bad item only fails itself
    items = fields.List(fields.Raw(), required=True, validate=validate.Length(min=1))
    allow_past = fields.Bool(load_default=False)


class DepartmentOrderSchema(Schema):
    date = fields.Date(required=True)
    meal_type = fields.Str(required=True, validate=validate.OneOf(MEAL_CHOICES))
    member_ids = fields.List(fields.Int(strict=True), required=True, validate=validate.Length(min=1))
    remark = fields.Str(allow_none=True, load_default=None, validate=validate.Length(max=500))
    allow_past = fields.Bool(load_default=False)


class ConfirmOrderSchema(Schema):
    remark = fields.Str(allow_none=True, load_default=None, validate=validate.Length(max=500))


class BatchConfirmSchema(Schema):
    order_ids = fields.List(fields.Int(strict=True), required=True, validate=validate.Length(min=1))
    remark = fields.Str(allow_none=True, load_default=None, validate=validate.Length(max=500))


class ScanSchema(Schema):
    token = fields.Str(required=True, validate=validate.Length(min=1))
    meal_type = fields.Str(allow_none=True, load_default=None, validate=validate.OneOf(MEAL_CHOICES + [None]))
    device_info = fields.Str(allow_none=True, load_default=None, validate=validate.Length(max=500))


class OrderHistoryQuerySchema(Schema):
    date = fields.Date(allow_none=True, load_default=None)
    start_date = fields.Date(allow_none=True, load_default=None)
    end_date = fields.Date(allow_none=True, load_default=None)
    state = fields.Str(allow_none=True, load_default=None, validate=validate.OneOf([e.value for e in OrderState]))
    meal_type = fields.Str(allow_none=True, load_default=None, validate=validate.OneOf(MEAL_CHOICES))
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=20, validate=validate.Range(min=1, max=100))

    @validates_schema
    def check_range(self, data, **kwargs):
        start, end = data.get("start_date"), data.get("end_date")
        if start and end and start > end:
            raise ValidationError("start_date must not be after end_date", "start_date")


class StatusQuerySchema(Schema):
    date = fields.Date(allow_none=True, load_default=None)


class StatsQuerySchema(Schema):
    date = fields.Date(allow_none=True, load_default=None)
    department_id = fields.Int(allow_none=True, load_default=None)


class ScanHistoryQuerySchema(Schema):
    start_date = fields.Date(allow_none=True, load_default=None)
    end_date = fields.Date(allow_none=True, load_default=None)
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=20, validate=validate.Range(min=1, max=100))


class DeptMembersQuerySchema(Schema):
    department_id = fields.Int(allow_none=True, load_default=None, validate=validate.Range(min=1))
