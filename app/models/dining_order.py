from app.extensions import db
from app.models.types import UTCDateTime
from app.utils.enums import OrderState
from app.utils.timeutil import utcnow


class DiningOrder(db.Model):
    __tablename__ = "dining_orders"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    registrant_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True)
    dining_date = db.Column(db.Date, nullable=False)
    meal_type = db.Column(db.String(20), nullable=False)
    menu_id = db.Column(db.Integer, db.ForeignKey("menus.id"), nullable=True)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    remark = db.Column(db.Text, nullable=True)
    state = db.Column(db.String(20), nullable=False, default=OrderState.ORDERED.value)
    register_time = db.Column(UTCDateTime, nullable=False)
    actual_dining_time = db.Column(UTCDateTime, nullable=True)
    confirmation_type = db.Column(db.String(20), nullable=True)
    confirmed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(UTCDateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = db.relationship("User", foreign_keys=[user_id])
    menu = db.relationship("Menu")

    __table_args__ = (
        # The store is the final arbiter of "one live order per member and meal"
        db.Index(
            "uq_dining_orders_active_meal",
            "user_id",
            "dining_date",
            "meal_type",
            unique=True,
            sqlite_where=db.text("state != 'cancelled'"),
            postgresql_where=db.text("state != 'cancelled'"),
        ),
        db.Index("ix_dining_orders_date_meal", "dining_date", "meal_type"),
        db.Index("ix_dining_orders_department_date", "department_id", "dining_date"),
    )
