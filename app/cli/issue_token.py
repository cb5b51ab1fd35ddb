import sys

from sqlalchemy import select

from app.database import SessionLocal, engine, Base
from app.dependencies import create_access_token
from app.models.user import User


def main():
    """Look up (or create) a user by email and print a bearer token for them."""
    Base.metadata.create_all(bind=engine)

    email = input("Email: ").strip()
    if not email:
        print("Email is required.")
        sys.exit(1)

    db = SessionLocal()
    try:
        user = db.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()

        if user is None:
            name = input("Name: ").strip()
            if not name:
                print("Name is required for a new user.")
                sys.exit(1)
            user = User(email=email, name=name)
            db.add(user)
            db.commit()
            print(f"User '{name}' created with id {user.id}.")
        elif not user.is_active:
            print(f"User with email {email} is inactive.")
            sys.exit(1)

        print(create_access_token(user))
    finally:
        db.close()


if __name__ == "__main__":
    main()
