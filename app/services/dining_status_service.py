"""
Dining Status Service

Read side of the dining domain: a member's status for a day, their order and
scan history, the members an administrator may order for, and cached daily
statistics per meal.
"""

import datetime as dt
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from app.extensions import db
from app.models.dining_order import DiningOrder
from app.models.scan_registration import ScanRegistration
from app.models.user import User
from app.services.menu_resolver import MenuResolver, dish_lines
from app.services.order_registrar import serialize_order
from app.services.time_window_policy import TimeWindowPolicy
from app.utils.auth import Identity
from app.utils.cache import TTLCache
from app.utils.enums import MealType, OrderState, ScanOutcome, UserStatus
from app.utils.errors import DiningError, ErrorCode
from app.utils.timeutil import isoformat_utc

logger = logging.getLogger(__name__)


def _empty_meal(meal: str) -> Dict[str, Any]:
    return {
        "meal_type": meal,
        "is_registered": False,
        "state": None,
        "order_id": None,
        "menu_id": None,
        "menu_name": None,
        "total_amount": 0.0,
        "dishes": [],
        "register_time": None,
        "actual_dining_time": None,
        "confirmation_type": None,
        "remark": None,
    }


def _meal_status(meal: str, order: Optional[DiningOrder]) -> Dict[str, Any]:
    status = _empty_meal(meal)
    if order is None:
        return status

    status.update({
        "is_registered": order.state != OrderState.CANCELLED.value,
        "state": order.state,
        "order_id": order.id,
        "menu_id": order.menu_id,
        "menu_name": order.menu.name if order.menu else None,
        "total_amount": float(order.total_amount or 0),
        "dishes": [line.to_dict() for line in dish_lines(order.menu_id)] if order.menu_id else [],
        "register_time": isoformat_utc(order.register_time),
        "actual_dining_time": isoformat_utc(order.actual_dining_time),
        "confirmation_type": order.confirmation_type,
        "remark": order.remark,
    })
    return status


class DiningStatusService:
    def __init__(self, policy: TimeWindowPolicy, resolver: MenuResolver, stats_cache: TTLCache):
        self.policy = policy
        self.resolver = resolver
        self.stats_cache = stats_cache

    def personal_status(self, actor: Identity, now: dt.datetime, day: Optional[dt.date] = None) -> Dict[str, Any]:
        day = day or self.policy.today(now)
        orders = (
            DiningOrder.query
            .filter(DiningOrder.user_id == actor.user_id, DiningOrder.dining_date == day)
            .order_by(DiningOrder.register_time.desc(), DiningOrder.id.desc())
            .all()
        )
        # The live order wins; otherwise show the most recent cancelled one
        by_meal: Dict[str, DiningOrder] = {}
        for order in orders:
            current = by_meal.get(order.meal_type)
            if current is None or (
                current.state == OrderState.CANCELLED.value and order.state != OrderState.CANCELLED.value
            ):
                by_meal[order.meal_type] = order

        meals = {m.value: _meal_status(m.value, by_meal.get(m.value)) for m in MealType}
        current = self.policy.resolve_meal_type(now)
        registered = [m for m in meals.values() if m["is_registered"]]

        available = []
        for meal, menu in self.resolver.published_menus_for(day).items():
            entry = menu.to_dict()
            entry["can_order"] = (
                not meals[meal]["is_registered"] and self.policy.is_within_ordering_window(day, meal, now)
            )
            available.append(entry)

        return {
            "date": day.isoformat(),
            "meals": meals,
            "summary": {
                "registered_count": len(registered),
                "dined_count": sum(1 for m in registered if m["state"] == OrderState.DINED.value),
                "total_amount": round(sum(m["total_amount"] for m in registered), 2),
            },
            "available_menus": available,
            "current_meal": current.value if current else None,
        }

    # Statistics

    def invalidate_stats(self, day: dt.date) -> None:
        self.stats_cache.invalidate_where(lambda key: key[0] == day.isoformat())

    def daily_stats(
        self, actor: Identity, now: dt.datetime, day: Optional[dt.date] = None, department_id: Optional[int] = None
    ) -> Dict[str, Any]:
        if not actor.is_admin:
            raise DiningError(ErrorCode.PERMISSION_DENIED, "Administrator role required")
        if not actor.is_sys_admin:
            if department_id is not None and department_id != actor.department_id:
                raise DiningError(ErrorCode.PERMISSION_DENIED, "You can only view your own department")
            department_id = actor.department_id
        day = day or self.policy.today(now)

        key = (day.isoformat(), department_id)
        return self.stats_cache.get_or_load(key, now, lambda: self._load_stats(day, department_id))

    def _load_stats(self, day: dt.date, department_id: Optional[int]) -> Dict[str, Any]:
        meals = {
            m.value: {"ordered": 0, "dined": 0, "cancelled": 0, "total": 0, "amount": 0.0, "scans": 0, "failed_scans": 0}
            for m in MealType
        }

        order_q = db.session.query(
            DiningOrder.meal_type,
            DiningOrder.state,
            func.count(DiningOrder.id),
            func.coalesce(func.sum(DiningOrder.total_amount), 0),
        ).filter(DiningOrder.dining_date == day)
        if department_id is not None:
            order_q = order_q.filter(DiningOrder.department_id == department_id)

        for meal, state, count, amount in order_q.group_by(DiningOrder.meal_type, DiningOrder.state):
            if meal not in meals:
                continue
            meals[meal][state] = count
            if state != OrderState.CANCELLED.value:
                meals[meal]["total"] += count
                meals[meal]["amount"] += float(Decimal(str(amount)))

        scan_q = db.session.query(
            ScanRegistration.meal_type, ScanRegistration.outcome, func.count(ScanRegistration.id)
        ).filter(ScanRegistration.dining_date == day)
        if department_id is not None:
            scan_q = scan_q.join(User, User.id == ScanRegistration.user_id).filter(User.department_id == department_id)

        for meal, outcome, count in scan_q.group_by(ScanRegistration.meal_type, ScanRegistration.outcome):
            if meal not in meals:
                continue
            if outcome == ScanOutcome.FAILED.value:
                meals[meal]["failed_scans"] += count
            else:
                meals[meal]["scans"] += count

        totals = {k: 0 for k in ("ordered", "dined", "cancelled", "total", "scans", "failed_scans")}
        totals["amount"] = 0.0
        for values in meals.values():
            values["amount"] = round(values["amount"], 2)
            for k in totals:
                totals[k] += values[k]
        totals["amount"] = round(totals["amount"], 2)

        logger.debug("Stats loaded for %s department=%s", day, department_id)
        return {
            "date": day.isoformat(),
            "department_id": department_id,
            "meals": meals,
            "total": totals,
        }


def order_history(
    actor: Identity,
    page: int = 1,
    limit: int = 20,
    day: Optional[dt.date] = None,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
    state: Optional[str] = None,
    meal_type: Optional[str] = None,
) -> Dict[str, Any]:
    query = DiningOrder.query.filter(DiningOrder.user_id == actor.user_id)

    if day:
        query = query.filter(DiningOrder.dining_date == day)
    if start_date:
        query = query.filter(DiningOrder.dining_date >= start_date)
    if end_date:
        query = query.filter(DiningOrder.dining_date <= end_date)
    if state:
        query = query.filter(DiningOrder.state == state)
    if meal_type:
        query = query.filter(DiningOrder.meal_type == meal_type)

    query = query.order_by(DiningOrder.dining_date.desc(), DiningOrder.id.desc())
    pagination = query.paginate(page=page, per_page=limit, error_out=False)

    return {
        "items": [serialize_order(o) for o in pagination.items],
        "total": pagination.total,
        "page": page,
        "limit": limit,
        "pages": pagination.pages,
    }


def scan_history(
    actor: Identity,
    page: int = 1,
    limit: int = 20,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
) -> Dict[str, Any]:
    query = ScanRegistration.query.filter(ScanRegistration.user_id == actor.user_id)
    if start_date:
        query = query.filter(ScanRegistration.dining_date >= start_date)
    if end_date:
        query = query.filter(ScanRegistration.dining_date <= end_date)

    query = query.order_by(ScanRegistration.scan_time.desc(), ScanRegistration.id.desc())
    pagination = query.paginate(page=page, per_page=limit, error_out=False)

    items = []
    for row in pagination.items:
        items.append({
            "id": row.id,
            "order_id": row.order_id,
            "qr_code_id": row.qr_code_id,
            "qr_code_name": row.qr_code.name if row.qr_code else None,
            "location": row.qr_code.location if row.qr_code else None,
            "scan_time": isoformat_utc(row.scan_time),
            "dining_date": row.dining_date.isoformat() if row.dining_date else None,
            "meal_type": row.meal_type,
            "claimed_meal_type": row.claimed_meal_type,
            "outcome": row.outcome,
            "failure_reason": row.failure_reason,
        })

    return {
        "items": items,
        "total": pagination.total,
        "page": page,
        "limit": limit,
        "pages": pagination.pages,
    }


def department_members(actor: Identity, department_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """Active members the administrator may order for."""
    if not actor.is_admin:
        raise DiningError(ErrorCode.PERMISSION_DENIED, "Administrator role required")
    if not actor.is_sys_admin:
        if department_id is not None and department_id != actor.department_id:
            raise DiningError(ErrorCode.PERMISSION_DENIED, "You can only view your own department")
        department_id = actor.department_id
        if department_id is None:
            return []

    query = User.query.filter(User.status == UserStatus.ACTIVE.value)
    if department_id is not None:
        query = query.filter(User.department_id == department_id)

    return [
        {
            "id": u.id,
            "name": u.name,
            "email": u.email,
            "role": u.role,
            "department_id": u.department_id,
            "department_name": u.department.name if u.department else None,
        }
        for u in query.order_by(User.name, User.id).all()
    ]
