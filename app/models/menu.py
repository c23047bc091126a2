from app.extensions import db
from app.models.types import UTCDateTime
from app.utils.enums import MenuStatus
from app.utils.timeutil import utcnow


class Menu(db.Model):
    __tablename__ = "menus"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    publish_date = db.Column(db.Date, nullable=False)
    meal_type = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=MenuStatus.DRAFT.value)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(UTCDateTime, default=utcnow, nullable=False)
    published_at = db.Column(UTCDateTime, nullable=True)
    published_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    revoked_at = db.Column(UTCDateTime, nullable=True)

    dishes = db.relationship(
        "MenuDish", backref="menu", order_by="MenuDish.sort", cascade="all, delete-orphan"
    )

    __table_args__ = (
        # one published menu per (date, meal)
        db.Index(
            "uq_menus_published_meal",
            "publish_date",
            "meal_type",
            unique=True,
            sqlite_where=db.text("status = 'published'"),
            postgresql_where=db.text("status = 'published'"),
        ),
        db.Index("ix_menus_date_meal", "publish_date", "meal_type"),
    )
