from typing import Any, Dict
from flask import request, jsonify
from marshmallow import Schema, ValidationError

from app.utils.errors import DiningError, ErrorCode


def ok(payload: Any, status: int = 200):
    return jsonify(payload), status


def error(code: str, message: str, status: int = 400, **extra):
    body: Dict[str, Any] = {"error": {"code": code, "message": message}}
    body["error"].update(extra)
    return jsonify(body), status


def error_from(exc: DiningError):
    return jsonify({"error": exc.to_dict()}), exc.status


def json_body() -> Dict[str, Any]:
    """JSON even without a Content-Type header; form fields otherwise; ``{}`` for an empty body."""
    data = request.get_json(force=True, silent=True)
    if data is None and request.form:
        return request.form.to_dict()
    return {} if data is None else data


def request_data() -> Dict[str, Any]:
    """JSON body for POST/PUT, query string for GET."""
    if request.method == "GET":
        return request.args.to_dict()
    return json_body()


def validate_schema(schema: Schema, data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise DiningError(ErrorCode.VALIDATION_ERROR, "Request body must be a JSON object")
    try:
        return schema.load(data)
    except ValidationError as err:
        raise DiningError(ErrorCode.VALIDATION_ERROR, fields=err.messages)
