from marshmallow import Schema, fields, validate
from app.utils.enums import QRCodeStatus

STATUS_CHOICES = [e.value for e in QRCodeStatus]


class CreateQRCodeSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    location = fields.Str(allow_none=True, load_default=None, validate=validate.Length(max=200))
    description = fields.Str(allow_none=True, load_default=None)


class QRCodeStatusSchema(Schema):
    status = fields.Str(required=True, validate=validate.OneOf(STATUS_CHOICES))


class ListQRCodeQuerySchema(Schema):
    status = fields.Str(allow_none=True, load_default=None, validate=validate.OneOf(STATUS_CHOICES))
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=50, validate=validate.Range(min=1, max=100))


class IssueTokenQuerySchema(Schema):
    ttl = fields.Int(allow_none=True, load_default=None, validate=validate.Range(min=1))
    image = fields.Bool(load_default=False)
