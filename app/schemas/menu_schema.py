from marshmallow import Schema, fields, validate
from app.utils.enums import MealType


class MenuDishSchema(Schema):
    dish_id = fields.Int(required=True, strict=True)
    sort = fields.Int(load_default=None, allow_none=True)


class CreateMenuSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=150))
    publish_date = fields.Date(required=True)
    meal_type = fields.Str(required=True, validate=validate.OneOf([e.value for e in MealType]))
    dishes = fields.List(fields.Nested(MenuDishSchema), load_default=[])


class PublishedMenuQuerySchema(Schema):
    date = fields.Date(allow_none=True, load_default=None)
    meal_type = fields.Str(required=True, validate=validate.OneOf([e.value for e in MealType]))
