from decimal import Decimal

from app import create_app
from app.extensions import db
from app.models.department import Department
from app.models.dish import Dish
from app.models.menu import Menu
from app.models.qr_code import QRCode
from app.models.user import User
from app.services import menu_service
from app.services.wiring import get_services, request_now
from app.utils.auth import Identity
from app.utils.enums import MealType, MenuStatus, UserRole

app = create_app()

with app.app_context():
    # ensure tables exist (non-destructive: won't alter existing columns)
    db.create_all()

    def get_or_create_department(name):
        dept = Department.query.filter_by(name=name).first()
        if not dept:
            dept = Department(name=name)
            db.session.add(dept)
            db.session.flush()
        return dept

    def get_or_create_user(name, email, role, dept):
        user = User.query.filter_by(email=email).first()
        if not user:
            user = User(name=name, email=email, role=role, department_id=dept.id)
            db.session.add(user)
            db.session.flush()
        return user

    def add_dish(name, price):
        if not Dish.query.filter_by(name=name).first():
            db.session.add(Dish(name=name, price=Decimal(str(price))))

    it = get_or_create_department("IT")
    finance = get_or_create_department("Finance")

    admin = get_or_create_user("System Admin", "admin@example.com", UserRole.SYS_ADMIN.value, it)
    get_or_create_user("IT Lead", "it.lead@example.com", UserRole.DEPT_ADMIN.value, it)
    get_or_create_user("Staff One", "staff1@example.com", UserRole.USER.value, it)
    get_or_create_user("Staff Two", "staff2@example.com", UserRole.USER.value, finance)

    add_dish("Steamed rice", 2.0)
    add_dish("Braised pork", 8.0)
    add_dish("Stir-fried greens", 3.0)
    add_dish("Congee", 1.5)
    add_dish("Steamed bun", 1.0)
    add_dish("Noodle soup", 6.0)

    if not QRCode.query.filter_by(name="Main hall").first():
        db.session.add(QRCode(code="DINING_QR_MAIN_HALL", name="Main hall", location="Building A, 1F"))

    db.session.commit()

    # Publish today's menus so the service is usable right away
    now = request_now()
    today = get_services().policy.today(now)
    actor = Identity(user_id=admin.id, role=admin.role, department_id=admin.department_id)
    plans = {
        MealType.BREAKFAST: ["Congee", "Steamed bun"],
        MealType.LUNCH: ["Steamed rice", "Braised pork", "Stir-fried greens"],
        MealType.DINNER: ["Noodle soup", "Stir-fried greens"],
    }
    for meal, names in plans.items():
        exists = Menu.query.filter(
            Menu.publish_date == today,
            Menu.meal_type == meal.value,
            Menu.status == MenuStatus.PUBLISHED.value,
        ).first()
        if exists:
            continue
        dishes = [{"dish_id": Dish.query.filter_by(name=n).first().id} for n in names]
        menu = menu_service.create_menu(actor, f"{meal.value.title()} {today.isoformat()}", today, meal.value, dishes)
        menu_service.publish_menu(actor, menu["id"], get_services().resolver, now)

    print("Seed completed.")
