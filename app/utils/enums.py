from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    DEPT_ADMIN = "dept_admin"
    SYS_ADMIN = "sys_admin"


ADMIN_ROLES = (UserRole.DEPT_ADMIN.value, UserRole.SYS_ADMIN.value)


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


MEAL_TYPES = [m.value for m in MealType]


class MenuStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    REVOKED = "revoked"


class OrderState(str, Enum):
    ORDERED = "ordered"
    DINED = "dined"
    CANCELLED = "cancelled"


class ConfirmationType(str, Enum):
    MANUAL = "manual"
    ADMIN = "admin"
    SCAN = "scan"


class QRCodeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ScanOutcome(str, Enum):
    SUCCESS = "success"
    DUPLICATE = "duplicate"
    FAILED = "failed"
