from app.extensions import db
from app.models.types import UTCDateTime
from app.utils.enums import UserRole, UserStatus
from app.utils.timeutil import utcnow


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(150), unique=True, nullable=True)
    role = db.Column(db.String(20), nullable=False, default=UserRole.USER.value)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=UserStatus.ACTIVE.value)
    created_at = db.Column(UTCDateTime, default=utcnow, nullable=False)

    department = db.relationship("Department", backref="members")

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value
