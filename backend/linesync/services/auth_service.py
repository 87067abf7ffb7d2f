# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Line staff authentication.

Passwords hashed with bcrypt (cost factor 12). Session tokens are managed
separately (see session_service.py).
"""

from __future__ import annotations

import bcrypt

from ..extensions import db
from ..models import User


class AuthenticationError(Exception):
    """Raised when credentials are rejected."""
    pass


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash password using bcrypt."""
    if not password:
        raise ValueError("Password must not be empty")
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def authenticate(username: str, password: str) -> User:
    """
    Return the active user for these credentials.

    Raises AuthenticationError with one message for every failure so the
    response does not reveal whether the username exists.
    """
    user = db.session.query(User).filter_by(username=username).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    return user


def create_user(
    username: str,
    password: str,
    line_access: list[str] | None = None,
    line_access_all: bool = False,
    line_closer: bool = False,
    is_admin: bool = False,
    first_name: str | None = None,
    last_name: str | None = None,
    rounds: int = 12,
) -> User:
    """Create a line staff account. Raises ValueError on duplicate username."""
    if db.session.query(User).filter_by(username=username).first():
        raise ValueError(f"Username {username!r} already exists")

    user = User(
        username=username,
        password_hash=hash_password(password, rounds=rounds),
        line_access=[code.strip().upper() for code in (line_access or []) if code.strip()],
        line_access_all=line_access_all,
        line_closer=line_closer,
        is_admin=is_admin,
        first_name=first_name,
        last_name=last_name,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user
