"""Session gate: password hashing, cookie sessions and identity dependencies."""

import hashlib
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from fastapi import Depends, Request, Response
from passlib.hash import bcrypt
from sqlalchemy import delete, select, update

from linkboard.config import Settings
from linkboard.database import Database, get_database
from linkboard.exceptions import UnauthorizedError
from linkboard.logging_config import get_logger
from linkboard.models import Session, User

logger = get_logger(__name__)

USER_ID_ALPHABET = string.ascii_lowercase + string.digits
USER_ID_LENGTH = 15


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def generate_user_id(length: int = USER_ID_LENGTH) -> str:
    """Random lowercase alphanumeric user id."""
    return "".join(secrets.choice(USER_ID_ALPHABET) for _ in range(length))


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """Hash a token for secure storage using SHA-256."""
    return hashlib.sha256(token.encode()).hexdigest()


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.using(rounds=rounds).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.verify(password, password_hash)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@dataclass
class SessionContext:
    """Identity resolved for one request; both fields are None when anonymous."""

    user: User | None = None
    session: Session | None = None
    fresh: bool = False


class SessionGate:
    """Issues, validates, renews and invalidates cookie sessions."""

    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.settings = settings
        self.cookie_name = settings.session_cookie_name
        self.ttl = timedelta(days=settings.session_ttl_days)

    async def create_session(self, user_id: str) -> tuple[str, Session]:
        """Start a session and return the cookie token with its stored row."""
        token = generate_session_token()
        row = Session(id=hash_token(token), user_id=user_id, expires_at=_utcnow() + self.ttl)
        async with self.db.transaction() as session:
            session.add(row)
        logger.info("session_created", user_id=user_id, expires_at=row.expires_at.isoformat())
        return token, row

    async def validate_session_token(self, token: str) -> SessionContext:
        """
        Resolve a cookie token to its user and session.

        Expired sessions are deleted and resolve to an empty context.
        Sessions with less than half their lifetime left are pushed out to
        a full TTL and flagged ``fresh`` so the caller re-issues the cookie.
        """
        session_id = hash_token(token)
        async with self.db.transaction() as session:
            row = (
                await session.execute(
                    select(Session, User)
                    .join(User, User.id == Session.user_id)
                    .where(Session.id == session_id)
                )
            ).first()
            if row is None:
                return SessionContext()

            stored, user = row.Session, row.User
            now = _utcnow()
            expires_at = _as_utc(stored.expires_at)

            if now >= expires_at:
                await session.execute(delete(Session).where(Session.id == session_id))
                logger.info("session_expired", user_id=user.id)
                return SessionContext()

            fresh = False
            if expires_at - now < self.ttl / 2:
                expires_at = now + self.ttl
                await session.execute(
                    update(Session)
                    .where(Session.id == session_id)
                    .values(expires_at=expires_at)
                    .execution_options(synchronize_session=False)
                )
                fresh = True

        stored.expires_at = expires_at
        return SessionContext(user=user, session=stored, fresh=fresh)

    async def invalidate_session(self, session_id: str) -> None:
        async with self.db.transaction() as session:
            await session.execute(delete(Session).where(Session.id == session_id))
        logger.info("session_invalidated")

    def set_cookie(self, response: Response, token: str, expires_at: datetime) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            expires=_as_utc(expires_at),
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.settings.is_production,
        )

    def clear_cookie(self, response: Response) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value="",
            max_age=0,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.settings.is_production,
        )


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_session_gate(request: Request, db: Database = Depends(get_database)) -> SessionGate:
    return SessionGate(db, request.app.state.settings)


async def get_session_context(
    request: Request,
    response: Response,
    gate: SessionGate = Depends(get_session_gate),
) -> SessionContext:
    """
    FastAPI dependency: resolve the session cookie.

    Unknown or expired tokens blank the cookie, on error responses too;
    renewed sessions re-issue it. Never raises for anonymous requests.
    """
    token = request.cookies.get(gate.cookie_name)
    if not token:
        return SessionContext()

    context = await gate.validate_session_token(token)
    if context.session is None:
        gate.clear_cookie(response)
        request.state.stale_session_cookie = True
        return context

    if context.fresh:
        gate.set_cookie(response, token, context.session.expires_at)
    structlog.contextvars.bind_contextvars(user_id=context.user.id)
    return context


async def get_current_user(
    context: SessionContext = Depends(get_session_context),
) -> User:
    """FastAPI dependency: the logged-in user, or 401."""
    if context.user is None:
        raise UnauthorizedError()
    return context.user


async def get_current_user_optional(
    context: SessionContext = Depends(get_session_context),
) -> User | None:
    """Optional user auth: returns User or None."""
    return context.user
