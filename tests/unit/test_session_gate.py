"""Tests for credentials and the cookie session gate."""

import re
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from linkboard.auth import (
    SessionGate,
    generate_user_id,
    hash_password,
    hash_token,
    verify_password,
)
from linkboard.models import Session


def test_user_ids_are_short_lowercase_alphanumeric():
    ids = {generate_user_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(re.fullmatch(r"[a-z0-9]{15}", i) for i in ids)


def test_password_hash_round_trip():
    hashed = hash_password("correct horse", rounds=4)

    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


@pytest.fixture
def gate(db, settings):
    return SessionGate(db, settings)


async def _set_expiry(db, session_id: str, expires_at: datetime) -> None:
    async with db.transaction() as session:
        await session.execute(update(Session).where(Session.id == session_id).values(expires_at=expires_at))


class TestSessionGate:

    @pytest.mark.asyncio
    async def test_only_token_digest_is_stored(self, db, gate, make_user):
        user = await make_user()

        token, stored = await gate.create_session(user.id)

        assert stored.id == hash_token(token)
        assert stored.id != token

    @pytest.mark.asyncio
    async def test_valid_token_resolves_user(self, gate, make_user):
        user = await make_user("dave")
        token, _ = await gate.create_session(user.id)

        context = await gate.validate_session_token(token)

        assert context.user.username == "dave"
        assert context.session is not None
        assert context.fresh is False

    @pytest.mark.asyncio
    async def test_unknown_token_resolves_nothing(self, gate):
        context = await gate.validate_session_token("no-such-token")

        assert context.user is None
        assert context.session is None

    @pytest.mark.asyncio
    async def test_expired_session_is_deleted(self, db, gate, make_user):
        user = await make_user()
        token, stored = await gate.create_session(user.id)
        await _set_expiry(db, stored.id, datetime.now(timezone.utc) - timedelta(minutes=1))

        context = await gate.validate_session_token(token)

        assert context.user is None
        async with db.session() as session:
            remaining = (await session.execute(select(Session).where(Session.id == stored.id))).scalar_one_or_none()
        assert remaining is None

    @pytest.mark.asyncio
    async def test_session_past_half_life_is_renewed(self, db, gate, make_user):
        user = await make_user()
        token, stored = await gate.create_session(user.id)
        await _set_expiry(db, stored.id, datetime.now(timezone.utc) + timedelta(days=2))

        context = await gate.validate_session_token(token)

        assert context.fresh is True
        expires_at = context.session.expires_at
        assert expires_at - datetime.now(timezone.utc) > timedelta(days=29)

    @pytest.mark.asyncio
    async def test_invalidate_session(self, gate, make_user):
        user = await make_user()
        token, stored = await gate.create_session(user.id)

        await gate.invalidate_session(stored.id)

        assert (await gate.validate_session_token(token)).user is None
