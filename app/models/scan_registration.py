from app.extensions import db
from app.models.types import UTCDateTime


class ScanRegistration(db.Model):
    """Append-only record of every scan attempt, successful or not."""

    __tablename__ = "scan_registrations"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    qr_code_id = db.Column(db.Integer, db.ForeignKey("qr_codes.id"), nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey("dining_orders.id"), nullable=True)
    scan_time = db.Column(UTCDateTime, nullable=False)
    dining_date = db.Column(db.Date, nullable=True)
    meal_type = db.Column(db.String(20), nullable=True)
    claimed_meal_type = db.Column(db.String(20), nullable=True)
    outcome = db.Column(db.String(20), nullable=False)
    failure_reason = db.Column(db.String(50), nullable=True)
    device_info = db.Column(db.Text, nullable=True)

    qr_code = db.relationship("QRCode")

    __table_args__ = (
        db.Index("ix_scan_registrations_user_time", "user_id", "scan_time"),
        db.Index("ix_scan_registrations_date_meal", "dining_date", "meal_type"),
    )
