"""
Error taxonomy for the dining API.

Every failure a caller can act on is an ``ErrorCode``; each code belongs to one
``ErrorKind`` and carries its HTTP status and a default user-facing message.
Services raise ``DiningError`` and the app factory renders it, so callers never
have to parse message text to find out what went wrong.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    BUSINESS = "business"
    DUPLICATE_ORDER = "duplicate_order"
    OUTSIDE_WINDOW = "outside_window"
    UNAUTHORIZED = "unauthorized"
    TOKEN = "token"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TRANSIENT = "transient"


class ErrorCode(str, Enum):
    # (kind, http status, default message)
    VALIDATION_ERROR = ("VALIDATION_ERROR", ErrorKind.VALIDATION, 400, "Request is invalid")
    DUPLICATE_MEMBER = ("DUPLICATE_MEMBER", ErrorKind.VALIDATION, 400, "Member appears more than once in the request")

    PAST_DATE = ("PAST_DATE", ErrorKind.BUSINESS, 422, "Cannot order for a past date")
    ORDERING_CLOSED = ("ORDERING_CLOSED", ErrorKind.OUTSIDE_WINDOW, 422, "Ordering for this meal has closed")
    MENU_NOT_FOUND = ("MENU_NOT_FOUND", ErrorKind.BUSINESS, 422, "No menu has been created for this meal")
    MENU_NOT_PUBLISHED = ("MENU_NOT_PUBLISHED", ErrorKind.BUSINESS, 422, "The menu for this meal is not published yet")
    MENU_REVOKED = ("MENU_REVOKED", ErrorKind.BUSINESS, 422, "The menu for this meal has been withdrawn")
    DUPLICATE_ORDER = ("DUPLICATE_ORDER", ErrorKind.DUPLICATE_ORDER, 409, "An order already exists for this meal")
    OUTSIDE_WINDOW = ("OUTSIDE_WINDOW", ErrorKind.OUTSIDE_WINDOW, 422, "Not within the dining time for this meal")
    ALREADY_CONFIRMED = ("ALREADY_CONFIRMED", ErrorKind.BUSINESS, 409, "This order has already been confirmed")
    ORDER_CANCELLED = ("ORDER_CANCELLED", ErrorKind.BUSINESS, 409, "This order has been cancelled")
    CANCELLATION_CUTOFF_PASSED = ("CANCELLATION_CUTOFF_PASSED", ErrorKind.OUTSIDE_WINDOW, 422, "Too late to cancel this order")
    NOT_REGISTERED = ("NOT_REGISTERED", ErrorKind.BUSINESS, 422, "You are not registered for this meal")
    MENU_NOT_DRAFT = ("MENU_NOT_DRAFT", ErrorKind.CONFLICT, 409, "Only draft menus can be published")
    MENU_NOT_PUBLISHED_STATE = ("MENU_NOT_PUBLISHED_STATE", ErrorKind.CONFLICT, 409, "Only published menus can be revoked")
    MENU_ALREADY_PUBLISHED = ("MENU_ALREADY_PUBLISHED", ErrorKind.CONFLICT, 409, "Another menu is already published for this meal")
    QR_CODE_INACTIVE = ("QR_CODE_INACTIVE", ErrorKind.BUSINESS, 422, "This code is no longer in service")

    UNAUTHORIZED = ("UNAUTHORIZED", ErrorKind.UNAUTHORIZED, 401, "Authentication required")
    PERMISSION_DENIED = ("PERMISSION_DENIED", ErrorKind.UNAUTHORIZED, 403, "You are not allowed to do this")

    TOKEN_EXPIRED = ("TOKEN_EXPIRED", ErrorKind.TOKEN, 401, "This code has expired, please refresh the code")
    TOKEN_REVOKED = ("TOKEN_REVOKED", ErrorKind.TOKEN, 401, "This code is no longer in service")
    TOKEN_TAMPERED = ("TOKEN_TAMPERED", ErrorKind.TOKEN, 401, "This code is not valid")
    IDENTITY_UNRESOLVED = ("IDENTITY_UNRESOLVED", ErrorKind.TOKEN, 401, "Could not identify who is scanning")

    ORDER_NOT_FOUND = ("ORDER_NOT_FOUND", ErrorKind.NOT_FOUND, 404, "Order not found")
    MENU_NOT_FOUND_ID = ("MENU_NOT_FOUND_ID", ErrorKind.NOT_FOUND, 404, "Menu not found")
    QR_CODE_NOT_FOUND = ("QR_CODE_NOT_FOUND", ErrorKind.NOT_FOUND, 404, "QR code not found")
    MEMBER_NOT_FOUND = ("MEMBER_NOT_FOUND", ErrorKind.NOT_FOUND, 404, "Member not found or inactive")
    DISH_NOT_FOUND = ("DISH_NOT_FOUND", ErrorKind.NOT_FOUND, 404, "Dish not found")
    NOT_FOUND = ("NOT_FOUND", ErrorKind.NOT_FOUND, 404, "Resource not found")

    CONFLICT = ("CONFLICT", ErrorKind.CONFLICT, 409, "The resource was modified concurrently")
    SERVICE_UNAVAILABLE = ("SERVICE_UNAVAILABLE", ErrorKind.TRANSIENT, 503, "Service temporarily unavailable, please try again")
    INTERNAL_ERROR = ("INTERNAL_ERROR", ErrorKind.TRANSIENT, 500, "Something went wrong, please try again")

    def __new__(cls, value, kind, status, message):
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.kind = kind
        obj.status = status
        obj.default_message = message
        return obj


class DiningError(Exception):
    """A failure with a machine-readable code."""

    def __init__(self, code: ErrorCode, message: Optional[str] = None, status: Optional[int] = None, **details):
        self.code = code
        self.message = message or code.default_message
        self.status = status or code.status
        self.details = details
        super().__init__(f"{code.value}: {self.message}")

    @property
    def kind(self) -> ErrorKind:
        return self.code.kind

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "code": self.code.value,
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.details:
            body.update(self.details)
        return body


__all__ = ["ErrorKind", "ErrorCode", "DiningError"]
