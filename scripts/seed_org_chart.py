"""
Seeds a small reporting line for local use of the appraisal workflow:
employee -> manager -> reviewer, plus an HR admin. Prints a bearer token per account.
"""
from app.database import SessionLocal, init_db
from app.models.employee import Employee
from app.models.user import User, UserRole
from app.services.auth import create_access_token

init_db()
db = SessionLocal()


def create_user(email, full_name, role):
    # Check if user already exists to avoid unique constraint errors
    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        print(f"User {email} already exists. Skipping.")
        return existing_user

    user = User(email=email, full_name=full_name, role=role, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"Created {role.value} -> {email}")
    return user


def create_employee(user, number, supervisor=None, reviewer=None):
    existing = db.query(Employee).filter(Employee.user_id == user.id).first()
    if existing:
        return existing
    first_name, _, last_name = user.full_name.partition(" ")
    employee = Employee(
        user_id=user.id,
        employee_number=number,
        first_name=first_name,
        last_name=last_name or "-",
        email=user.email,
        supervisor_id=supervisor.id if supervisor else None,
        reviewer_id=reviewer.id if reviewer else None,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


reviewer = create_user("reviewer@example.com", "Rita Reviewer", UserRole.MANAGER)
manager = create_user("manager@example.com", "Sam Manager", UserRole.MANAGER)
employee = create_user("employee@example.com", "Emma Employee", UserRole.EMPLOYEE)
hr = create_user("hr@example.com", "Hank HR", UserRole.HR_ADMIN)

reviewer_record = create_employee(reviewer, "E-003")
manager_record = create_employee(manager, "E-002")
create_employee(employee, "E-001", supervisor=manager_record, reviewer=reviewer_record)
create_employee(hr, "E-004")

for user in (employee, manager, reviewer, hr):
    token = create_access_token(data={"sub": user.email, "role": user.role.value, "user_id": user.id})
    print(f"{user.email}: {token}")

db.close()
