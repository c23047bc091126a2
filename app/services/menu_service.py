"""
Menu Service

Draft / publish / revoke lifecycle for daily menus. Publishing copies each
dish's current catalog price onto the menu line, so later catalog edits never
change what an order costs.
"""

import datetime as dt
import logging
from decimal import Decimal
from typing import Dict, Any, List, Optional

from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models.dish import Dish
from app.models.menu import Menu
from app.models.menu_dish import MenuDish
from app.services.menu_resolver import MenuResolver
from app.utils.auth import Identity
from app.utils.enums import MealType, MenuStatus
from app.utils.errors import DiningError, ErrorCode
from app.utils.timeutil import isoformat_utc

logger = logging.getLogger(__name__)


def _get_menu(menu_id: int) -> Menu:
    menu = db.session.get(Menu, menu_id)
    if not menu:
        raise DiningError(ErrorCode.MENU_NOT_FOUND_ID, menu_id=menu_id)
    return menu


def serialize_menu(menu: Menu) -> Dict[str, Any]:
    dishes = []
    for line in menu.dishes:
        dishes.append({
            "dish_id": line.dish_id,
            "name": line.dish.name if line.dish else None,
            "price": float(line.price) if line.price is not None else None,
            "catalog_price": float(line.dish.price) if line.dish else None,
            "sort": line.sort,
        })

    return {
        "id": menu.id,
        "name": menu.name,
        "publish_date": menu.publish_date.isoformat(),
        "meal_type": menu.meal_type,
        "status": menu.status,
        "created_by": menu.created_by,
        "created_at": isoformat_utc(menu.created_at),
        "published_at": isoformat_utc(menu.published_at),
        "published_by": menu.published_by,
        "revoked_at": isoformat_utc(menu.revoked_at),
        "dishes": dishes,
    }


def get_menu_detail(menu_id: int) -> Dict[str, Any]:
    return serialize_menu(_get_menu(menu_id))


def create_menu(
    actor: Identity,
    name: str,
    publish_date: dt.date,
    meal_type: str,
    dishes: Optional[List[Dict]] = None,
) -> Dict[str, Any]:
    """
    Create a draft menu.

    Args:
        actor: Administrator creating the menu
        name: Display name
        publish_date: Civil date the menu is served on
        meal_type: breakfast/lunch/dinner
        dishes: List of {dish_id, sort}

    Returns:
        Serialized menu

    Raises:
        DiningError: DISH_NOT_FOUND when a dish id is unknown or inactive
    """
    dishes = dishes or []
    dish_ids = [item["dish_id"] for item in dishes]
    if len(set(dish_ids)) != len(dish_ids):
        raise DiningError(ErrorCode.VALIDATION_ERROR, "A dish appears more than once in the menu")

    found = {
        d.id: d
        for d in Dish.query.filter(Dish.id.in_(dish_ids or [0]), Dish.is_active.is_(True)).all()
    }
    missing = [i for i in dish_ids if i not in found]
    if missing:
        raise DiningError(ErrorCode.DISH_NOT_FOUND, dish_ids=missing)

    menu = Menu(
        name=name,
        publish_date=publish_date,
        meal_type=MealType(meal_type).value,
        status=MenuStatus.DRAFT.value,
        created_by=actor.user_id,
    )
    db.session.add(menu)
    db.session.flush()

    for position, item in enumerate(dishes):
        db.session.add(MenuDish(
            menu_id=menu.id,
            dish_id=item["dish_id"],
            sort=item["sort"] if item.get("sort") is not None else position,
        ))

    db.session.commit()
    logger.info("Menu %s drafted for %s %s by user %s", menu.id, publish_date, menu.meal_type, actor.user_id)
    return serialize_menu(menu)


def publish_menu(actor: Identity, menu_id: int, resolver: MenuResolver, now: dt.datetime) -> Dict[str, Any]:
    menu = _get_menu(menu_id)
    if menu.status != MenuStatus.DRAFT.value:
        raise DiningError(ErrorCode.MENU_NOT_DRAFT, menu_id=menu_id, status=menu.status)

    for line in menu.dishes:
        line.price = Decimal(line.dish.price).quantize(Decimal("0.01"))

    menu.status = MenuStatus.PUBLISHED.value
    menu.published_at = now
    menu.published_by = actor.user_id
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("Menu %s not published: another menu is live for %s %s", menu_id, menu.publish_date, menu.meal_type)
        raise DiningError(ErrorCode.MENU_ALREADY_PUBLISHED, menu_id=menu_id)

    resolver.invalidate(menu.publish_date, menu.meal_type)
    logger.info("Menu %s published by user %s", menu.id, actor.user_id)
    return serialize_menu(menu)


def revoke_menu(actor: Identity, menu_id: int, resolver: MenuResolver, now: dt.datetime) -> Dict[str, Any]:
    """Withdraw a published menu. Existing orders keep their frozen totals."""
    menu = _get_menu(menu_id)
    if menu.status != MenuStatus.PUBLISHED.value:
        raise DiningError(ErrorCode.MENU_NOT_PUBLISHED_STATE, menu_id=menu_id, status=menu.status)

    menu.status = MenuStatus.REVOKED.value
    menu.revoked_at = now
    db.session.commit()

    resolver.invalidate(menu.publish_date, menu.meal_type)
    logger.info("Menu %s revoked by user %s", menu.id, actor.user_id)
    return serialize_menu(menu)
