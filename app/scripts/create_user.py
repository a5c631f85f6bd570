"""
Create a user (e.g. the first admin). Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD EMPLOYEE_ID FIRST LAST DEPARTMENT POSITION [--role ROLE]
Example:
  python -m app.scripts.create_user admin@example.com s3cret-pass EMP001 Ada Admin Finance "System Admin" --role admin
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from app.models.user import User
from app.schemas.auth import ROLE_VALUES


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a cash-advance user outside the API.")
    parser.add_argument("email")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("employee_id")
    parser.add_argument("first_name")
    parser.add_argument("last_name")
    parser.add_argument("department")
    parser.add_argument("position")
    parser.add_argument("--role", default="admin", choices=sorted(ROLE_VALUES))
    parser.add_argument("--phone", default=None)
    args = parser.parse_args()

    email = args.email.strip().lower()
    employee_id = args.employee_id.strip().upper()
    if "@" not in email:
        print("Invalid email address.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(
            f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.",
            file=sys.stderr,
        )
        return 1

    db = SessionLocal()
    try:
        existing = (
            db.query(User)
            .filter((User.email == email) | (User.employee_id == employee_id))
            .first()
        )
        if existing:
            print(
                f"User with email '{email}' or employee ID '{employee_id}' already exists.",
                file=sys.stderr,
            )
            return 1
        user = User(
            email=email,
            employee_id=employee_id,
            first_name=args.first_name.strip(),
            last_name=args.last_name.strip(),
            department=args.department.strip(),
            position=args.position.strip(),
            role=args.role,
            phone=args.phone,
            is_active=True,
            password_hash=hash_password(args.password),
        )
        db.add(user)
        db.commit()
        print(f"Created user '{email}' with role '{args.role}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
