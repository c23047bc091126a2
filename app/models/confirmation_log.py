from app.extensions import db
from app.models.types import UTCDateTime


class DiningConfirmationLog(db.Model):
    __tablename__ = "dining_confirmation_logs"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("dining_orders.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    confirmation_type = db.Column(db.String(20), nullable=False)
    confirmed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    confirmation_time = db.Column(UTCDateTime, nullable=False)
    remark = db.Column(db.Text, nullable=True)
