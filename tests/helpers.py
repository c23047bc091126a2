import datetime as dt
from zoneinfo import ZoneInfo

from app.models.user import User
from app.utils.auth import Identity, create_token

SHANGHAI = ZoneInfo("Asia/Shanghai")
TODAY = dt.date(2025, 9, 11)


def at(day: dt.date, hhmm: str, tz=SHANGHAI) -> dt.datetime:
    return dt.datetime.combine(day, dt.time.fromisoformat(hhmm), tzinfo=tz)


def identity(user: User) -> Identity:
    return Identity(user_id=user.id, role=user.role, department_id=user.department_id)


def auth_headers(user: User):
    token = create_token(user.id, user.role, user.department_id)
    return {"Authorization": f"Bearer {token}"}
