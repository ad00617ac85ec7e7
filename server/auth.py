"""Password gate and session authentication utilities."""

import asyncio
from typing import Optional

import bcrypt
from fastapi import Header

from server import config
from server.exceptions import NotAuthenticatedError
from server.repositories.session_repository import Session, SessionRepository


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """
    Hash a transfer password using bcrypt.

    Args:
        password: Plain text password to hash
        rounds: bcrypt cost factor, defaults to the configured value

    Returns:
        Bcrypt hash of the password
    """
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=rounds or config.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against a bcrypt hash.

    Args:
        password: Plain text password to verify
        password_hash: Bcrypt hash to verify against

    Returns:
        True if password matches hash, False otherwise (including a malformed hash)
    """
    password_bytes = password.encode('utf-8')
    hash_bytes = password_hash.encode('utf-8')
    try:
        return bcrypt.checkpw(password_bytes, hash_bytes)
    except ValueError:
        return False


async def hash_password_async(password: str) -> str:
    """Hash on a worker thread; bcrypt is deliberately slow."""
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(password: str, password_hash: str) -> bool:
    """Verify on a worker thread; bcrypt is deliberately slow."""
    return await asyncio.to_thread(verify_password, password, password_hash)


def _session_from_header(authorization: Optional[str]) -> Optional[Session]:
    if not authorization or not authorization.startswith("Bearer "):
        return None

    session_id = authorization[len("Bearer "):].strip()
    if not session_id:
        return None

    session = SessionRepository.get_by_id(session_id)
    if session is None or session.is_expired():
        return None
    return session


async def get_optional_session(authorization: Optional[str] = Header(None)) -> Optional[Session]:
    """
    FastAPI dependency resolving ``Authorization: Bearer <session id>`` when present.

    Returns:
        Active session, or None when the header is absent, unknown or expired
    """
    return _session_from_header(authorization)


async def get_current_session(authorization: Optional[str] = Header(None)) -> Session:
    """
    FastAPI dependency requiring an active session.

    Raises:
        NotAuthenticatedError: 401 if the session is missing, unknown or expired
    """
    session = _session_from_header(authorization)
    if session is None:
        raise NotAuthenticatedError("Authentication required")
    return session


def is_admin(session: Session) -> bool:
    return session.email.strip().lower() in config.ADMIN_EMAILS
