import os
from app import create_app
from app.extensions import db
from app.models.department import Department
from app.models.user import User
from app.utils.auth import create_token
from app.utils.enums import UserRole

app = create_app()

with app.app_context():
    dept_name = os.getenv('ADMIN_DEPARTMENT', 'Administration')
    email = os.getenv('ADMIN_EMAIL', 'admin@example.com')

    department = Department.query.filter_by(name=dept_name).first()
    if department is None:
        department = Department(name=dept_name)
        db.session.add(department)
        db.session.flush()
        print(f'Created department {dept_name}')

    admin = User.query.filter_by(email=email).first()
    if admin is None:
        admin = User(
            name=os.getenv('ADMIN_NAME', 'Canteen Admin'),
            email=email,
            role=UserRole.SYS_ADMIN.value,
            department_id=department.id,
        )
        db.session.add(admin)
        print(f'Created system administrator {email}')
    elif admin.role != UserRole.SYS_ADMIN.value:
        admin.role = UserRole.SYS_ADMIN.value
        print(f'Promoted {email} to system administrator')
    else:
        print(f'{email} is already a system administrator')
    db.session.commit()

    # Sessions are issued elsewhere; this token is for operators and smoke tests
    print(f'Bearer token: {create_token(admin.id, admin.role, admin.department_id)}')
