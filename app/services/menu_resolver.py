"""
Menu Resolver

Finds the published menu for a (date, meal type) and returns it as an
immutable snapshot with its frozen dish prices. Read-only.
"""

import datetime as dt
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from app.extensions import db
from app.models.menu import Menu
from app.models.menu_dish import MenuDish
from app.utils.cache import TTLCache
from app.utils.enums import MealType, MenuStatus
from app.utils.errors import DiningError, ErrorCode
from app.utils.timeutil import Clock, isoformat_utc

logger = logging.getLogger(__name__)


class MenuLookupStatus(str, Enum):
    FOUND = "found"
    NOT_CREATED = "not_created"
    NOT_PUBLISHED = "not_published"
    REVOKED = "revoked"


_STATUS_ERRORS = {
    MenuLookupStatus.NOT_CREATED: ErrorCode.MENU_NOT_FOUND,
    MenuLookupStatus.NOT_PUBLISHED: ErrorCode.MENU_NOT_PUBLISHED,
    MenuLookupStatus.REVOKED: ErrorCode.MENU_REVOKED,
}


@dataclass(frozen=True)
class MenuDishLine:
    dish_id: int
    name: Optional[str]
    price: Decimal
    sort: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dish_id": self.dish_id,
            "name": self.name,
            "price": float(self.price),
            "sort": self.sort,
        }


@dataclass(frozen=True)
class PublishedMenu:
    id: int
    name: str
    publish_date: dt.date
    meal_type: str
    published_at: Optional[dt.datetime]
    dishes: Tuple[MenuDishLine, ...] = field(default_factory=tuple)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.price for line in self.dishes), Decimal("0.00"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "menu_id": self.id,
            "name": self.name,
            "date": self.publish_date.isoformat(),
            "meal_type": self.meal_type,
            "published_at": isoformat_utc(self.published_at),
            "total_amount": float(self.total_amount),
            "dishes": [line.to_dict() for line in self.dishes],
        }


@dataclass(frozen=True)
class MenuLookup:
    status: MenuLookupStatus
    publish_date: dt.date
    meal_type: str
    menu: Optional[PublishedMenu] = None

    @property
    def found(self) -> bool:
        return self.status == MenuLookupStatus.FOUND

    def raise_for_status(self, status: Optional[int] = None) -> PublishedMenu:
        if self.menu is not None:
            return self.menu
        raise DiningError(
            _STATUS_ERRORS[self.status],
            status=status,
            date=self.publish_date.isoformat(),
            meal_type=self.meal_type,
        )


def dish_lines(menu_id: int) -> Tuple[MenuDishLine, ...]:
    rows = (
        MenuDish.query
        .filter_by(menu_id=menu_id)
        .order_by(MenuDish.sort, MenuDish.id)
        .all()
    )
    return tuple(
        MenuDishLine(
            dish_id=row.dish_id,
            name=row.dish.name if row.dish else None,
            price=Decimal(row.price if row.price is not None else 0).quantize(Decimal("0.01")),
            sort=row.sort or 0,
        )
        for row in rows
    )


def snapshot(menu: Menu) -> PublishedMenu:
    return PublishedMenu(
        id=menu.id,
        name=menu.name,
        publish_date=menu.publish_date,
        meal_type=menu.meal_type,
        published_at=menu.published_at,
        dishes=dish_lines(menu.id),
    )


class MenuResolver:
    def __init__(self, cache: TTLCache, clock: Clock):
        self.cache = cache
        self.clock = clock

    @staticmethod
    def _key(day: dt.date, meal_type: str) -> Tuple[str, str]:
        return (day.isoformat(), meal_type)

    def get_published_menu(self, day: dt.date, meal_type, use_cache: bool = True) -> MenuLookup:
        meal = MealType(meal_type).value
        key = self._key(day, meal)
        if use_cache:
            cached = self.cache.get(key, self.clock.now_utc())
            if cached is not None:
                return MenuLookup(MenuLookupStatus.FOUND, day, meal, cached)

        lookup = self._load(day, meal)
        if lookup.found:
            self.cache.put(key, lookup.menu, self.clock.now_utc())
        return lookup

    def published_menus_for(self, day: dt.date) -> Dict[str, PublishedMenu]:
        result = {}
        for meal in MealType:
            lookup = self.get_published_menu(day, meal.value)
            if lookup.found:
                result[meal.value] = lookup.menu
        return result

    def invalidate(self, day: dt.date, meal_type: str) -> None:
        self.cache.invalidate(self._key(day, MealType(meal_type).value))

    def _load(self, day: dt.date, meal: str) -> MenuLookup:
        statuses: List[str] = [
            row.status
            for row in db.session.query(Menu.status).filter(
                Menu.publish_date == day, Menu.meal_type == meal
            )
        ]
        if MenuStatus.PUBLISHED.value in statuses:
            menu = Menu.query.filter_by(
                publish_date=day, meal_type=meal, status=MenuStatus.PUBLISHED.value
            ).first()
            return MenuLookup(MenuLookupStatus.FOUND, day, meal, snapshot(menu))
        if MenuStatus.DRAFT.value in statuses:
            return MenuLookup(MenuLookupStatus.NOT_PUBLISHED, day, meal)
        if MenuStatus.REVOKED.value in statuses:
            return MenuLookup(MenuLookupStatus.REVOKED, day, meal)
        logger.debug("No menu for %s %s", day, meal)
        return MenuLookup(MenuLookupStatus.NOT_CREATED, day, meal)
