"""
Confirmation Engine

Moves dining orders out of ``ordered``: to ``dined`` when the diner confirms,
an administrator confirms, or a check-in code is scanned; to ``cancelled`` on
request. Both target states are terminal.

Every transition is a single compare-and-set UPDATE guarded by
``state = 'ordered'``, so two concurrent confirmations can never both win and a
rejected request never touches the row.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db
from app.models.confirmation_log import DiningConfirmationLog
from app.models.dining_order import DiningOrder
from app.models.scan_registration import ScanRegistration
from app.services.order_registrar import BatchReport, find_active_order, serialize_order, store_failure
from app.services.qr_token_service import QRTokenService
from app.services.time_window_policy import TimeWindowPolicy
from app.utils.auth import Identity
from app.utils.enums import ConfirmationType, OrderState, ScanOutcome
from app.utils.errors import DiningError, ErrorCode
from app.utils.timeutil import isoformat_utc

logger = logging.getLogger(__name__)

Authorizer = Callable[[Identity, Any], bool]


def _is_owner_or_registrant(actor: Identity, order) -> bool:
    return actor.user_id in (order.user_id, order.registrant_id)


def _is_department_admin(actor: Identity, order) -> bool:
    return actor.can_manage_department(order.department_id)


def _may_cancel(actor: Identity, order) -> bool:
    return _is_owner_or_registrant(actor, order) or _is_department_admin(actor, order)


def _is_diner(actor: Identity, order) -> bool:
    return actor.user_id == order.user_id


_TERMINAL_ERRORS = {
    OrderState.DINED.value: ErrorCode.ALREADY_CONFIRMED,
    OrderState.CANCELLED.value: ErrorCode.ORDER_CANCELLED,
}


@dataclass
class ConfirmationResult:
    order: DiningOrder
    already_confirmed: bool = False
    scan_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = serialize_order(self.order)
        data["already_confirmed"] = self.already_confirmed
        if self.scan_id is not None:
            data["scan_id"] = self.scan_id
        return data


class ConfirmationEngine:
    def __init__(
        self,
        policy: TimeWindowPolicy,
        tokens: QRTokenService,
        batch_max_items: int = 100,
        on_change: Optional[Callable[[dt.date], None]] = None,
    ):
        self.policy = policy
        self.tokens = tokens
        self.batch_max_items = batch_max_items
        self.on_change = on_change

    def _load_order(self, order_id: int):
        order = db.session.get(DiningOrder, order_id)
        if order is None:
            raise DiningError(ErrorCode.ORDER_NOT_FOUND, order_id=order_id)
        return order

    def _reject_terminal(self, order_id: int, state: str) -> None:
        code = _TERMINAL_ERRORS.get(state)
        if code is not None:
            raise DiningError(code, order_id=order_id, state=state)

    def _compare_and_set(self, order_id: int, values: Dict[str, Any]) -> bool:
        updated = (
            DiningOrder.query
            .filter(DiningOrder.id == order_id, DiningOrder.state == OrderState.ORDERED.value)
            .update(values, synchronize_session=False)
        )
        return updated == 1

    def _lost_race(self, order_id: int) -> None:
        """Another request moved the order first; report the state it left behind."""
        db.session.rollback()
        current = db.session.get(DiningOrder, order_id, populate_existing=True)
        state = current.state if current is not None else None
        logger.info("Order %s changed concurrently, now %s", order_id, state)
        self._reject_terminal(order_id, state)
        raise DiningError(ErrorCode.CONFLICT, order_id=order_id)

    def _transition(
        self,
        actor: Identity,
        order,
        confirmation_type: ConfirmationType,
        authorize: Authorizer,
        now: dt.datetime,
        remark: Optional[str] = None,
        scan: Optional[Dict[str, Any]] = None,
    ) -> ConfirmationResult:
        """The one path from ``ordered`` to ``dined``."""
        if not authorize(actor, order):
            raise DiningError(ErrorCode.PERMISSION_DENIED, order_id=order.id)
        self._reject_terminal(order.id, order.state)

        if order.dining_date != self.policy.today(now) or not self.policy.is_within_confirmation_window(
            order.meal_type, now
        ):
            raise DiningError(
                ErrorCode.OUTSIDE_WINDOW,
                order_id=order.id,
                dining_date=order.dining_date.isoformat(),
                meal_type=order.meal_type,
            )

        won = self._compare_and_set(order.id, {
            DiningOrder.state: OrderState.DINED.value,
            DiningOrder.actual_dining_time: now,
            DiningOrder.confirmation_type: confirmation_type.value,
            DiningOrder.confirmed_by: actor.user_id,
            DiningOrder.updated_at: now,
        })
        if not won:
            self._lost_race(order.id)

        db.session.add(DiningConfirmationLog(
            order_id=order.id,
            user_id=order.user_id,
            confirmation_type=confirmation_type.value,
            confirmed_by=actor.user_id,
            confirmation_time=now,
            remark=remark,
        ))
        scan_row = None
        if scan is not None:
            scan_row = ScanRegistration(order_id=order.id, outcome=ScanOutcome.SUCCESS.value, **scan)
            db.session.add(scan_row)
        db.session.commit()

        confirmed = db.session.get(DiningOrder, order.id, populate_existing=True)
        logger.info(
            "Order %s confirmed (%s) by user %s", order.id, confirmation_type.value, actor.user_id
        )
        if self.on_change:
            self.on_change(confirmed.dining_date)
        return ConfirmationResult(order=confirmed, scan_id=scan_row.id if scan_row else None)

    # Confirmation paths

    def confirm_manual(self, actor: Identity, order_id: int, now: dt.datetime) -> ConfirmationResult:
        order = self._load_order(order_id)
        return self._transition(actor, order, ConfirmationType.MANUAL, _is_owner_or_registrant, now)

    def confirm_admin(
        self, actor: Identity, order_id: int, now: dt.datetime, remark: Optional[str] = None
    ) -> ConfirmationResult:
        order = self._load_order(order_id)
        return self._transition(actor, order, ConfirmationType.ADMIN, _is_department_admin, now, remark=remark)

    def batch_confirm_admin(
        self, actor: Identity, order_ids: Iterable[int], now: dt.datetime, remark: Optional[str] = None
    ) -> BatchReport:
        order_ids = list(order_ids)
        if len(order_ids) > self.batch_max_items:
            raise DiningError(
                ErrorCode.VALIDATION_ERROR,
                f"At most {self.batch_max_items} items per request",
                count=len(order_ids),
            )

        report = BatchReport()
        for index, order_id in enumerate(order_ids):
            try:
                result = self.confirm_admin(actor, order_id, now, remark=remark)
                report.orders.append(result.to_dict())
            except DiningError as exc:
                report.fail(index, {"order_id": order_id}, exc)
            except SQLAlchemyError as exc:
                report.fail(index, {"order_id": order_id}, store_failure(exc, index))
        return report

    def confirm_scan(
        self,
        actor: Identity,
        token: str,
        now: dt.datetime,
        claimed_meal_type: Optional[str] = None,
        device_info: Optional[str] = None,
    ) -> ConfirmationResult:
        today = self.policy.today(now)
        meal = self.policy.resolve_meal_type(now)
        meal_value = meal.value if meal else None
        scan = {
            "user_id": actor.user_id,
            "qr_code_id": None,
            "scan_time": now,
            "dining_date": today,
            "meal_type": meal_value,
            "claimed_meal_type": claimed_meal_type,
            "device_info": device_info,
        }

        verification = self.tokens.verify_token(token, now)
        if verification.reason != ErrorCode.TOKEN_TAMPERED:
            scan["qr_code_id"] = verification.qr_code_id
        if not verification.valid:
            self._fail_scan(scan, verification.reason)

        if claimed_meal_type and claimed_meal_type != meal_value:
            # The server clock decides the meal; the client's guess is kept for audit only
            logger.warning(
                "Scan by user %s claimed %s but server time resolves to %s",
                actor.user_id, claimed_meal_type, meal_value,
            )
        if meal is None:
            self._fail_scan(scan, ErrorCode.OUTSIDE_WINDOW)

        order = find_active_order(actor.user_id, today, meal_value)
        if order is None:
            self._fail_scan(scan, ErrorCode.NOT_REGISTERED)

        if order.state == OrderState.DINED.value:
            return self._repeat_scan(order, scan)

        try:
            return self._transition(actor, order, ConfirmationType.SCAN, _is_diner, now, scan=scan)
        except DiningError as exc:
            if exc.code == ErrorCode.ALREADY_CONFIRMED:
                return self._repeat_scan(self._load_order(order.id), scan)
            self._fail_scan(scan, exc.code, exc)

    def _repeat_scan(self, order: DiningOrder, scan: Dict[str, Any]) -> ConfirmationResult:
        row = ScanRegistration(order_id=order.id, outcome=ScanOutcome.DUPLICATE.value, **scan)
        db.session.add(row)
        db.session.commit()
        logger.info("Repeat scan for order %s by user %s", order.id, order.user_id)
        self._scans_changed(scan)
        return ConfirmationResult(order=order, already_confirmed=True, scan_id=row.id)

    def _fail_scan(
        self, scan: Dict[str, Any], reason: ErrorCode, exc: Optional[DiningError] = None
    ) -> None:
        """Persist the failed attempt in its own transaction, then raise ``exc`` or a new error for ``reason``."""
        db.session.rollback()
        db.session.add(ScanRegistration(outcome=ScanOutcome.FAILED.value, failure_reason=reason.value, **scan))
        db.session.commit()
        logger.info("Scan by user %s rejected: %s", scan["user_id"], reason.value)
        self._scans_changed(scan)
        raise exc or DiningError(reason)

    def _scans_changed(self, scan: Dict[str, Any]) -> None:
        # Scan counters are part of the cached daily statistics
        if self.on_change:
            self.on_change(scan["dining_date"])

    # Cancellation

    def cancel(self, actor: Identity, order_id: int, now: dt.datetime) -> DiningOrder:
        order = self._load_order(order_id)
        if not _may_cancel(actor, order):
            raise DiningError(ErrorCode.PERMISSION_DENIED, order_id=order_id)
        self._reject_terminal(order.id, order.state)
        if self.policy.is_past_cancellation_cutoff(order.dining_date, order.meal_type, now):
            raise DiningError(
                ErrorCode.CANCELLATION_CUTOFF_PASSED,
                order_id=order_id,
                cutoff=isoformat_utc(self.policy.meal_start(order.dining_date, order.meal_type) - self.policy.cancel_cutoff),
            )

        won = self._compare_and_set(order.id, {
            DiningOrder.state: OrderState.CANCELLED.value,
            DiningOrder.cancelled_at: now,
            DiningOrder.cancelled_by: actor.user_id,
            DiningOrder.updated_at: now,
        })
        if not won:
            self._lost_race(order.id)
        db.session.commit()

        cancelled = db.session.get(DiningOrder, order.id, populate_existing=True)
        logger.info("Order %s cancelled by user %s", order.id, actor.user_id)
        if self.on_change:
            self.on_change(cancelled.dining_date)
        return cancelled
