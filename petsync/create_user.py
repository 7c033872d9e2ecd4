"""Create a user (and optionally attach it to businesses).

Usage:
    python -m petsync.create_user EMAIL PASSWORD ROLE [--name NAME] [--business ID ...]
"""
import argparse
import sys

from petsync.auth.passwords import hash_password
from petsync.database import SessionLocal, ensure_schema
from petsync.models.business import Business
from petsync.models.user import User
from petsync.services.access_policy import Role


def create_user(db, email: str, password: str, role: str, full_name: str = "", business_ids=()) -> User:
    normalized_email = email.strip().lower()
    if db.query(User).filter(User.email == normalized_email).first() is not None:
        raise ValueError(f"User {normalized_email} already exists.")

    businesses = []
    for business_id in business_ids:
        business = db.get(Business, business_id)
        if business is None:
            raise ValueError(f"Business {business_id} not found.")
        businesses.append(business)

    user = User(
        email=normalized_email,
        full_name=full_name,
        hashed_password=hash_password(password),
        role=Role(role).value,
        businesses=businesses,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("role", choices=[role.value for role in Role])
    parser.add_argument("--name", default="")
    parser.add_argument("--business", type=int, action="append", default=[])
    args = parser.parse_args()

    ensure_schema()
    db = SessionLocal()
    try:
        user = create_user(db, args.email, args.password, args.role, args.name, args.business)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()
    print(f"Created {user.role} {user.email} (id={user.id})")


if __name__ == "__main__":
    main()
