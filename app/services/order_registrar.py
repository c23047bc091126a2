"""
Order Registrar

Creates dining orders against the published menu. Checks run in a fixed
order (ordering window, published menu, who may order for whom, existing
order) and the partial unique index on ``dining_orders`` has the final say on
duplicates.
"""

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.extensions import db
from app.models.dining_order import DiningOrder
from app.models.user import User
from app.schemas.dining_schema import OrderItemSchema
from app.services.menu_resolver import MenuResolver
from app.services.time_window_policy import TimeWindowPolicy
from app.utils.auth import Identity
from app.utils.enums import MealType, OrderState
from app.utils.errors import DiningError, ErrorCode
from app.utils.timeutil import isoformat_utc

logger = logging.getLogger(__name__)

_item_schema = OrderItemSchema()


def serialize_order(order: DiningOrder) -> Dict[str, Any]:
    return {
        "order_id": order.id,
        "user_id": order.user_id,
        "user_name": order.user.name if order.user else None,
        "registrant_id": order.registrant_id,
        "department_id": order.department_id,
        "dining_date": order.dining_date.isoformat(),
        "meal_type": order.meal_type,
        "menu_id": order.menu_id,
        "total_amount": float(order.total_amount or 0),
        "remark": order.remark,
        "state": order.state,
        "register_time": isoformat_utc(order.register_time),
        "actual_dining_time": isoformat_utc(order.actual_dining_time),
        "confirmation_type": order.confirmation_type,
        "confirmed_by": order.confirmed_by,
        "cancelled_at": isoformat_utc(order.cancelled_at),
    }


def find_active_order(user_id: int, day: dt.date, meal_type: str) -> Optional[DiningOrder]:
    return DiningOrder.query.filter(
        DiningOrder.user_id == user_id,
        DiningOrder.dining_date == day,
        DiningOrder.meal_type == meal_type,
        DiningOrder.state != OrderState.CANCELLED.value,
    ).first()


def store_failure(exc: SQLAlchemyError, index: int) -> DiningError:
    """Roll back after a store error on one batch item and describe it as retryable."""
    db.session.rollback()
    logger.exception("Store error on batch item %s", index)
    return DiningError(ErrorCode.SERVICE_UNAVAILABLE, retryable=True)


@dataclass
class BatchReport:
    orders: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.orders)

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    def fail(self, index: int, item: Any, exc: DiningError) -> None:
        entry = {
            "index": index,
            "item": item,
            "reason": exc.code.value,
            "kind": exc.kind.value,
            "message": exc.message,
        }
        if exc.details:
            entry["details"] = exc.details
        self.errors.append(entry)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "orders": self.orders,
            "errors": self.errors,
        }


class OrderRegistrar:
    def __init__(
        self,
        policy: TimeWindowPolicy,
        resolver: MenuResolver,
        batch_max_items: int = 100,
        on_change: Optional[Callable[[dt.date], None]] = None,
    ):
        self.policy = policy
        self.resolver = resolver
        self.batch_max_items = batch_max_items
        self.on_change = on_change

    def _check_window(self, day: dt.date, meal: str, now: dt.datetime) -> None:
        if self.policy.is_past_date(day, now):
            raise DiningError(ErrorCode.PAST_DATE, date=day.isoformat())
        if not self.policy.is_within_ordering_window(day, meal, now):
            raise DiningError(ErrorCode.ORDERING_CLOSED, date=day.isoformat(), meal_type=meal)

    def _resolve_member(self, actor: Identity, member_id: Optional[int]) -> User:
        if member_id is None or member_id == actor.user_id:
            member = db.session.get(User, actor.user_id)
            if member is None or not member.is_active:
                raise DiningError(ErrorCode.MEMBER_NOT_FOUND, member_id=actor.user_id)
            return member

        if not actor.is_admin:
            raise DiningError(ErrorCode.PERMISSION_DENIED, "You can only order for yourself")
        member = db.session.get(User, member_id)
        if member is None or not member.is_active:
            raise DiningError(ErrorCode.MEMBER_NOT_FOUND, member_id=member_id)
        if not actor.can_manage_department(member.department_id):
            raise DiningError(
                ErrorCode.PERMISSION_DENIED,
                "You can only order for members of your own department",
                member_id=member_id,
            )
        return member

    def submit_order(
        self,
        actor: Identity,
        dining_date: dt.date,
        meal_type: str,
        remark: Optional[str],
        now: dt.datetime,
        member_id: Optional[int] = None,
        allow_past: bool = False,
    ) -> DiningOrder:
        meal = MealType(meal_type).value
        # Only administrators may back-fill orders for past dates or closed meals
        if not (allow_past and actor.is_admin):
            self._check_window(dining_date, meal, now)

        # Ordering always reads the store, never the menu cache
        menu = self.resolver.get_published_menu(dining_date, meal, use_cache=False).raise_for_status()
        member = self._resolve_member(actor, member_id)

        existing = find_active_order(member.id, dining_date, meal)
        if existing is not None:
            raise DiningError(ErrorCode.DUPLICATE_ORDER, order_id=existing.id, member_id=member.id)

        order = DiningOrder(
            user_id=member.id,
            registrant_id=actor.user_id,
            department_id=member.department_id,
            dining_date=dining_date,
            meal_type=meal,
            menu_id=menu.id,
            total_amount=menu.total_amount,
            remark=remark,
            state=OrderState.ORDERED.value,
            register_time=now,
            updated_at=now,
        )
        db.session.add(order)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.info(
                "Concurrent duplicate order rejected for user %s on %s %s", member.id, dining_date, meal
            )
            raise DiningError(ErrorCode.DUPLICATE_ORDER, member_id=member.id)

        logger.info(
            "Order %s registered for user %s on %s %s by user %s",
            order.id, member.id, dining_date, meal, actor.user_id,
        )
        if self.on_change:
            self.on_change(dining_date)
        return order

    def _check_batch_size(self, count: int) -> None:
        if count > self.batch_max_items:
            raise DiningError(
                ErrorCode.VALIDATION_ERROR,
                f"At most {self.batch_max_items} items per request",
                count=count,
            )

    def submit_batch(self, actor: Identity, items: List[Any], now: dt.datetime, allow_past: bool = False) -> BatchReport:
        """Order several (date, meal) slots for the caller; items succeed or fail independently."""
        self._check_batch_size(len(items))
        report = BatchReport()
        for index, item in enumerate(items):
            try:
                data = _item_schema.load(item if isinstance(item, dict) else {})
            except ValidationError as err:
                report.fail(index, item, DiningError(ErrorCode.VALIDATION_ERROR, fields=err.messages))
                continue
            try:
                order = self.submit_order(
                    actor, data["date"], data["meal_type"], data.get("remark"), now, allow_past=allow_past
                )
                report.orders.append(serialize_order(order))
            except DiningError as exc:
                report.fail(index, item, exc)
            except SQLAlchemyError as exc:
                report.fail(index, item, store_failure(exc, index))
        return report

    def submit_on_behalf(
        self,
        actor: Identity,
        dining_date: dt.date,
        meal_type: str,
        member_ids: Iterable[int],
        remark: Optional[str],
        now: dt.datetime,
        allow_past: bool = False,
    ) -> BatchReport:
        if not actor.is_admin:
            raise DiningError(ErrorCode.PERMISSION_DENIED, "Administrator role required")
        member_ids = list(member_ids)
        self._check_batch_size(len(member_ids))

        report = BatchReport()
        seen = set()
        for index, member_id in enumerate(member_ids):
            item = {"member_id": member_id}
            if member_id in seen:
                report.fail(index, item, DiningError(ErrorCode.DUPLICATE_MEMBER, member_id=member_id))
                continue
            seen.add(member_id)
            try:
                order = self.submit_order(
                    actor, dining_date, meal_type, remark, now, member_id=member_id, allow_past=allow_past
                )
                report.orders.append(serialize_order(order))
            except DiningError as exc:
                report.fail(index, item, exc)
            except SQLAlchemyError as exc:
                report.fail(index, item, store_failure(exc, index))

        logger.info(
            "Department order by user %s for %s %s: %s ok, %s failed",
            actor.user_id, dining_date, meal_type, report.success_count, report.failed_count,
        )
        return report
