from flask import Blueprint
from app.utils.auth import require_auth, require_admin
from app.controllers.menu_controller import (
    get_published_menu_handler,
    create_menu_handler,
    get_menu_detail_handler,
    publish_menu_handler,
    revoke_menu_handler,
)

menu_bp = Blueprint("menu", __name__, url_prefix="/api/menus")

@menu_bp.get("/published")
@require_auth
def published_menu():
    return get_published_menu_handler()

# Admin Routes

@menu_bp.post("")
@require_admin
def create_menu():
    return create_menu_handler()

@menu_bp.get("/<int:id>")
@require_admin
def get_menu(id):
    return get_menu_detail_handler(id)

@menu_bp.post("/<int:id>/publish")
@require_admin
def publish_menu(id):
    return publish_menu_handler(id)

@menu_bp.post("/<int:id>/revoke")
@require_admin
def revoke_menu(id):
    return revoke_menu_handler(id)
