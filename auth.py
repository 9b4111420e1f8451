"""User registration and password checks (bcrypt)."""

import logging
from typing import Optional

import bcrypt
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import User
from errors import AuthError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def register_user(db: Session, username: str, email: str, password: str) -> User:
    """
    Create a new account.

    Raises AuthError when a field is missing or the username/email is
    already registered.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email or not password:
        raise AuthError("All fields are required")
    if "@" not in email:
        raise AuthError("Please enter a valid email")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    existing = db.query(User).filter(or_(User.email == email, User.username == username)).first()
    if existing:
        if existing.email == email:
            raise AuthError("User already exists with this email")
        raise AuthError("Username is already taken")

    user = User(username=username, email=email, password_hash=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    """Return the user for valid credentials, otherwise None."""
    email = (email or "").strip().lower()
    if not email or not password:
        return None
    user = db.query(User).filter(User.email == email).first()
    if user and verify_password(password, user.password_hash):
        return user
    return None


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def public_user(user: User) -> dict:
    return {"id": user.id, "username": user.username, "email": user.email}
