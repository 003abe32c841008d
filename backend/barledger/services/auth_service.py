# Overview: Service-layer operations for auth; staff accounts, bcrypt passwords and bearer sessions.

"""
Authentication

WHY: Every ledger entry is attributable to the staff member who produced it.
Services never check roles themselves; routes gate on the user's role and
pass user_id down for attribution.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters
- Session tokens are 32 random bytes; only their SHA-256 hash is stored
- Tokens expire after SESSION_TTL_HOURS and are revocable on logout
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

import bcrypt

from ..errors import AuthError, ValidationError
from ..models import SessionToken, User
from ..models.auth import ROLES
from ..time_utils import utcnow
from .concurrency import run_with_retry

MIN_PASSWORD_LENGTH = 8
DEFAULT_SESSION_TTL = timedelta(hours=12)


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe via bcrypt.checkpw; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_user(ctx, username: str, password: str, role: str, name: str | None = None) -> User:
    username = (username or "").strip().lower()
    if not username:
        raise ValidationError("username is required")
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    password_hash = hash_password(password)

    def _op():
        if ctx.session.query(User.id).filter_by(username=username).first() is not None:
            raise ValidationError("Username already exists")
        user = User(username=username, name=name, password_hash=password_hash, role=role, is_active=True)
        ctx.session.add(user)
        ctx.session.commit()
        return user

    return run_with_retry(ctx, _op)


def list_users(ctx) -> list[User]:
    return ctx.session.query(User).order_by(User.username.asc()).all()


def authenticate(ctx, username: str, password: str) -> User | None:
    user = ctx.session.query(User).filter_by(username=(username or "").strip().lower(), is_active=True).first()
    if not user or not verify_password(password or "", user.password_hash):
        return None
    return user


def login(ctx, username: str, password: str, ttl: timedelta = DEFAULT_SESSION_TTL) -> tuple[User, str]:
    """
    Returns (user, plaintext_token). The client sends the token back as
    ``Authorization: Bearer <token>``.
    """
    user = authenticate(ctx, username, password)
    if not user:
        raise AuthError("Invalid credentials")

    token = generate_token()

    def _op():
        now = utcnow()
        ctx.session.add(SessionToken(
            user_id=user.id,
            token_hash=hash_token(token),
            created_at=now,
            expires_at=now + ttl,
        ))
        user.last_login_at = now
        ctx.session.commit()

    run_with_retry(ctx, _op)
    return user, token


def validate_session(ctx, token: str) -> User | None:
    """User behind a live token, or None if unknown, expired, revoked or deactivated."""
    if not token:
        return None
    record = ctx.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not record or record.revoked_at is not None or record.expires_at <= utcnow():
        return None
    user = record.user
    if not user or not user.is_active:
        return None
    return user


def logout(ctx, token: str) -> bool:
    def _op():
        record = ctx.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
        if not record or record.revoked_at is not None:
            return False
        record.revoked_at = utcnow()
        ctx.session.commit()
        return True

    return run_with_retry(ctx, _op)
