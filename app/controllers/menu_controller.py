"""
Menu Controller

Published-menu lookup for members and the draft / publish / revoke flow for
administrators.
"""

from app.schemas.menu_schema import CreateMenuSchema, PublishedMenuQuerySchema
from app.services import menu_service
from app.services.wiring import get_services, request_now
from app.utils.auth import current_identity
from app.utils.http import ok, json_body, request_data, validate_schema

_published_query_schema = PublishedMenuQuerySchema()
_create_menu_schema = CreateMenuSchema()


def get_published_menu_handler():
    now = request_now()
    services = get_services()
    data = validate_schema(_published_query_schema, request_data())
    day = data["date"] or services.policy.today(now)

    lookup = services.resolver.get_published_menu(day, data["meal_type"])
    menu = lookup.raise_for_status(status=404)
    return ok(menu.to_dict())


def create_menu_handler():
    data = validate_schema(_create_menu_schema, json_body())
    menu = menu_service.create_menu(
        current_identity(),
        name=data["name"],
        publish_date=data["publish_date"],
        meal_type=data["meal_type"],
        dishes=data["dishes"],
    )
    return ok(menu, 201)


def get_menu_detail_handler(menu_id: int):
    return ok(menu_service.get_menu_detail(menu_id))


def publish_menu_handler(menu_id: int):
    now = request_now()
    menu = menu_service.publish_menu(current_identity(), menu_id, get_services().resolver, now)
    return ok(menu)


def revoke_menu_handler(menu_id: int):
    now = request_now()
    menu = menu_service.revoke_menu(current_identity(), menu_id, get_services().resolver, now)
    return ok(menu)
