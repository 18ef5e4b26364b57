"""Staff authentication.

Every write in the service is attributed to the acting staff user: order
notes carry ``user_id`` and stock movements carry ``created_by``. This module
turns a login or a bearer token into that actor.
"""

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.models.user import User

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def create_access_token(actor: User) -> str:
    payload = {
        "sub": str(actor.id),
        "username": actor.username,
        "role": actor.role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def resolve_actor(db: Session, token: str) -> User | None:
    """The active user a token was issued to, or None."""
    payload = decode_token(token)
    if not payload or not str(payload.get("sub", "")).isdigit():
        return None
    actor = db.query(User).filter(User.id == int(payload["sub"])).first()
    if not actor or not actor.active:
        logger.info("Rejected token for missing or disabled user %s", payload["sub"])
        return None
    return actor


def authenticate(db: Session, username: str, password: str) -> User | None:
    actor = db.query(User).filter(User.username == username, User.active.is_(True)).first()
    if not actor or not verify_password(password, actor.password_hash):
        logger.info("Failed login for '%s'", username)
        return None
    return actor


def create_user(db: Session, username: str, password: str, display_name: str = "", role: str = "staff") -> User:
    if db.query(User).filter(User.username == username).first():
        raise ValueError(f"Username '{username}' already exists")
    actor = User(
        username=username,
        display_name=display_name or username,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(actor)
    db.commit()
    db.refresh(actor)
    return actor


def ensure_default_admin(db: Session) -> None:
    """Seed an admin on an empty users table so the first login is possible."""
    if db.query(User).count() == 0:
        create_user(db, username="admin", password="admin", display_name="Admin", role="admin")
        logger.warning("Created default admin user; change its password")
