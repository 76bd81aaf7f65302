"""Create the salon admin account, or promote an existing user to admin.

Usage:
    python -m salon_backend.create_admin --email owner@example.com --name Owner --password secret
"""
import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from salon_backend.auth.passwords import hash_password
from salon_backend.database import Base, SessionLocal, engine
from salon_backend.models import appointment, availability, blocked_date, post, service  # noqa: F401
from salon_backend.models.user import User, UserRole

logger = logging.getLogger(__name__)


def create_or_promote_admin(db, email: str, name: str, password: str | None = None) -> User:
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        if not password:
            raise ValueError('A password is required to create a new admin account')
        user = User(name=name.strip(), email=email, hashed_password=hash_password(password))
        db.add(user)
    elif password:
        user.hashed_password = hash_password(password)

    user.role = UserRole.ADMIN.value
    db.commit()
    db.refresh(user)
    return user


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description='Create or promote the salon admin account.')
    parser.add_argument('--email', required=True)
    parser.add_argument('--name', default='Admin')
    parser.add_argument('--password')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        user = create_or_promote_admin(db, args.email, args.name, args.password)
    except (ValueError, SQLAlchemyError) as exc:
        db.rollback()
        print(f'Could not create admin: {exc}', file=sys.stderr)
        return 1
    finally:
        db.close()

    logger.info('Admin account ready: %s (id=%s)', user.email, user.id)
    return 0


if __name__ == '__main__':
    sys.exit(main())
