from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db
from app.services.wiring import get_services, request_now
from app.utils.timeutil import isoformat_utc


def home_index():
    return jsonify({
        "message": "Canteen dining service is running",
    })


def health_check():
    now = request_now()
    db_status = "healthy"
    try:
        # Ping the database
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as e:
        db.session.rollback()
        db_status = f"unhealthy: {e.__class__.__name__}"

    services = get_services()
    meal = services.policy.resolve_meal_type(now)
    return jsonify({
        "status": "online",
        "database": db_status,
        "server_time": isoformat_utc(now),
        "meal_windows": services.policy.to_dict(),
        "current_meal": meal.value if meal else None,
        "menu_cache": services.menu_cache.stats.to_dict(),
    }), 200 if db_status == "healthy" else 503
