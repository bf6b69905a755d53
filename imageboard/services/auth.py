"""Authentication service: passwords and cookie session tokens."""

import hmac
import logging
import uuid

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from imageboard.models.user import User

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class TokenError(Exception):
    """Raised when a session token cannot be issued or does not validate."""


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def get_user_by_name(db: Session, name: str) -> User | None:
    """Get a user by account name."""
    return db.query(User).filter(User.name == name).first()


def authenticate_user(db: Session, name: str, password: str) -> User | None:
    """Authenticate an enabled user by name and password."""
    user = get_user_by_name(db, name)
    if not user or user.disabled:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_user(db: Session, name: str, password: str, permissions: int = 0) -> User:
    """Create a new user."""
    user = User(name=name, password_hash=get_password_hash(password), permissions=permissions)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _parse_token(token_id: str | None) -> uuid.UUID | None:
    """Parse a textual token, returning None for blank, malformed or nil values."""
    if not token_id:
        return None
    try:
        parsed = uuid.UUID(token_id)
    except (ValueError, AttributeError, TypeError):
        return None
    if parsed.int == 0:
        return None
    return parsed


def validate_token(db: Session, user_name: str, token_id: str | None, ip: str) -> None:
    """Check a cookie token against the account's stored token and address.

    Succeeds only for an enabled account whose stored token and address both
    match. Raises TokenError otherwise.
    """
    row = db.query(User.token_id, User.ip, User.disabled).filter(User.name == user_name).first()
    if row is None:
        raise TokenError("Token invalid")

    stored_token, stored_ip, disabled = row
    if disabled:
        raise TokenError("Account disabled")

    if stored_token is None or stored_ip is None:
        logger.error(f"ValidateToken {user_name}: no token stored for account (ip {ip})")
        raise TokenError("Token invalid")

    supplied = _parse_token(token_id)
    if supplied is None:
        # Every anonymous request lands here; not logged
        raise TokenError("Token provided is blank")

    if stored_ip != ip:
        logger.error(f"ValidateToken {user_name}: token registered for a different IP ({ip})")
        raise TokenError("Token invalid")

    expected = _parse_token(stored_token)
    if expected is None or not hmac.compare_digest(supplied.bytes, expected.bytes):
        logger.error(f"ValidateToken {user_name}: tokens don't match (ip {ip})")
        raise TokenError("Token invalid")


def generate_token(db: Session, user_name: str, ip: str) -> str:
    """Issue a fresh token bound to ``ip``, replacing any previous session."""
    new_token = str(uuid.uuid4())
    updated = (
        db.query(User)
        .filter(User.name == user_name)
        .update({User.token_id: new_token, User.ip: ip}, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        logger.error(f"GenerateToken {user_name}: failed to save token, no such user (ip {ip})")
        raise TokenError("failed to generate a token, check if user exists")
    db.commit()
    return new_token


def revoke_token(db: Session, user_name: str) -> None:
    """Clear the stored token and address. Idempotent."""
    try:
        db.query(User).filter(User.name == user_name).update(
            {User.token_id: None, User.ip: None}, synchronize_session=False
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"RevokeToken {user_name}: token not revoked: {e}")
        raise
    logger.info(f"RevokeToken {user_name}: token revoked")
