from app.extensions import db
from app.models.types import UTCDateTime
from app.utils.timeutil import utcnow


class Department(db.Model):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(UTCDateTime, default=utcnow, nullable=False)
