#!/usr/bin/env python3
"""Create (or re-enable) an administrator account with every permission.

Usage:
    # From project root:
    python scripts/create_admin.py admin 'a-strong-password'

    # Against another database:
    DATABASE_URL=mysql+pymysql://imageboard:imageboard@db:3306/imageboard \
        python scripts/create_admin.py admin 'a-strong-password'
"""

import argparse
import os
import sys
from functools import reduce

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from imageboard.database import Base, SessionLocal, engine
from imageboard.models import Permission, User
from imageboard.services.auth import get_password_hash

ALL_PERMISSIONS = int(reduce(lambda acc, perm: acc | perm, Permission, Permission.NONE))


def create_admin(name: str, password: str) -> User:
    """Create the account, or reset its password and permissions if it exists."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        user = session.query(User).filter(User.name == name).first()
        if user:
            print(f"User {name} exists, resetting password and permissions...")
            user.password_hash = get_password_hash(password)
        else:
            user = User(name=name, password_hash=get_password_hash(password))
            session.add(user)
        user.permissions = ALL_PERMISSIONS
        user.disabled = False
        session.commit()
        session.refresh(user)
        print(f"Administrator {user.name} (id {user.id}) ready")
        return user
    except Exception as e:
        session.rollback()
        print(f"Error creating administrator: {e}")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("name")
    parser.add_argument("password")
    args = parser.parse_args()
    create_admin(args.name, args.password)
