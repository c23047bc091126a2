from decimal import Decimal
from types import SimpleNamespace

import pytest

from app import create_app
from app.extensions import db
from app.models.department import Department
from app.models.dish import Dish
from app.models.qr_code import QRCode
from app.models.user import User
from app.services import menu_service
from app.services.wiring import get_services, set_clock
from app.utils.enums import UserRole
from app.utils.timeutil import FixedClock
from tests.helpers import TODAY, at, identity


@pytest.fixture
def clock():
    return FixedClock(at(TODAY, "08:00"))


@pytest.fixture
def app(clock):
    app = create_app("config.TestingConfig")
    set_clock(app, clock)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return get_services()


@pytest.fixture
def world(app):
    """Two departments, their members and administrators, a dish catalog and one check-in code."""
    it = Department(name="IT")
    finance = Department(name="Finance")
    db.session.add_all([it, finance])
    db.session.flush()

    def user(name, role=UserRole.USER.value, dept=it):
        u = User(name=name, email=f"{name.lower()}@example.com", role=role, department_id=dept.id)
        db.session.add(u)
        return u

    w = SimpleNamespace(
        it=it,
        finance=finance,
        alice=user("Alice"),
        bob=user("Bob"),
        carol=user("Carol"),
        frank=user("Frank", dept=finance),
        it_admin=user("Ivy", role=UserRole.DEPT_ADMIN.value),
        sys_admin=user("Sam", role=UserRole.SYS_ADMIN.value),
        rice=Dish(name="Rice", price=Decimal("2.00")),
        pork=Dish(name="Braised pork", price=Decimal("10.00")),
        set_meal=Dish(name="Lunch set", price=Decimal("12.00")),
        congee=Dish(name="Congee", price=Decimal("1.50")),
        qr=QRCode(code="DINING_QR_TEST_HALL", name="Main hall", location="Building A"),
    )
    db.session.add_all([w.rice, w.pork, w.set_meal, w.congee, w.qr])
    db.session.commit()
    return w


@pytest.fixture
def publish(world, services, clock):
    """Create and publish a menu; returns the serialized menu."""

    def _publish(day=TODAY, meal="lunch", dishes=None, name=None):
        dishes = dishes or [world.set_meal]
        admin = identity(world.sys_admin)
        menu = menu_service.create_menu(
            admin,
            name=name or f"{meal} {day}",
            publish_date=day,
            meal_type=meal,
            dishes=[{"dish_id": d.id} for d in dishes],
        )
        return menu_service.publish_menu(admin, menu["id"], services.resolver, clock.now_utc())

    return _publish
