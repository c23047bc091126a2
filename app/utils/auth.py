import datetime as dt
from dataclasses import dataclass
from functools import wraps
from typing import Optional
from flask import request, current_app
import jwt

from app.utils.enums import ADMIN_ROLES, UserRole
from app.utils.errors import DiningError, ErrorCode
from app.utils.http import error


@dataclass(frozen=True)
class Identity:
    """Verified caller as supplied by the authentication layer."""

    user_id: int
    role: str
    department_id: Optional[int]

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_sys_admin(self) -> bool:
        return self.role == UserRole.SYS_ADMIN.value

    def can_manage_department(self, department_id: Optional[int]) -> bool:
        if self.is_sys_admin:
            return True
        if self.role == UserRole.DEPT_ADMIN.value:
            return department_id is not None and department_id == self.department_id
        return False


def create_token(user_id: int, role: str, department_id: Optional[int] = None, hours: Optional[int] = None) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    hours = hours or current_app.config.get("AUTH_TOKEN_HOURS", 12)
    payload = {
        "sub": str(user_id),
        "role": role,
        "dept": department_id,
        "iat": int(now.timestamp()),
        "exp": int((now + dt.timedelta(hours=hours)).timestamp()),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def decode_token(token: str):
    return jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=["HS256"])


def _identity_from_header() -> Optional[Identity]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1]
    try:
        payload = decode_token(token)
        dept = payload.get("dept")
        return Identity(
            user_id=int(payload["sub"]),
            role=payload.get("role") or UserRole.USER.value,
            department_id=int(dept) if dept is not None else None,
        )
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError):
        return None


def _bind(identity: Identity) -> None:
    request.user_id = identity.user_id  # type: ignore
    request.user_role = identity.role  # type: ignore
    request.department_id = identity.department_id  # type: ignore
    request.identity = identity  # type: ignore


def require_auth(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if not request.headers.get("Authorization", "").startswith("Bearer "):
            return error("UNAUTHORIZED", "Missing Bearer token", 401)
        identity = _identity_from_header()
        if identity is None:
            return error("UNAUTHORIZED", "Invalid token", 401)
        _bind(identity)
        return f(*args, **kwargs)
    return wrapper


def require_admin(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        identity = _identity_from_header()
        if identity is None:
            return error("UNAUTHORIZED", "Missing or invalid Bearer token", 401)
        if not identity.is_admin:
            return error("PERMISSION_DENIED", "Administrator role required", 403)
        _bind(identity)
        return f(*args, **kwargs)
    return wrapper


def current_identity() -> Identity:
    identity = getattr(request, "identity", None)
    if identity is None:
        raise DiningError(ErrorCode.UNAUTHORIZED)
    return identity


def resolve_scanner_identity() -> Identity:
    """Identity of whoever is scanning; a scan without one cannot be attributed."""
    identity = getattr(request, "identity", None) or _identity_from_header()
    if identity is None:
        raise DiningError(ErrorCode.IDENTITY_UNRESOLVED)
    _bind(identity)
    return identity


__all__ = [
    "Identity",
    "create_token",
    "decode_token",
    "require_auth",
    "require_admin",
    "current_identity",
    "resolve_scanner_identity",
]
