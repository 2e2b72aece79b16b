"""Ledger store access: atomic counters, subject locking and upvote rows."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from linkboard.exceptions import NotFoundError
from linkboard.logging_config import get_logger
from linkboard.models import Comment, CommentUpvote, Post, PostUpvote, SubjectKind

logger = get_logger(__name__)

SUBJECT_MODELS = {
    SubjectKind.post: Post,
    SubjectKind.comment: Comment,
}

# ledger model and the column pointing at its subject
LEDGERS = {
    SubjectKind.post: (PostUpvote, PostUpvote.post_id),
    SubjectKind.comment: (CommentUpvote, CommentUpvote.comment_id),
}

COUNTER_COLUMNS = {"points", "comment_count"}

# Integer primary keys are 32-bit on PostgreSQL
MAX_ROW_ID = 2**31 - 1


def subject_label(kind: SubjectKind) -> str:
    return kind.value.capitalize()


def is_row_id(value: int | None) -> bool:
    """True when ``value`` could name a stored row; anything else cannot exist."""
    return value is not None and 1 <= value <= MAX_ROW_ID


class LedgerRepository:
    """Data access for counters and upvote ledgers inside one transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def increment_counter(
        self,
        model: type[Post] | type[Comment],
        row_id: int,
        column: str,
        delta: int,
    ) -> int | None:
        """Apply ``column = column + delta`` and return the new value.

        Returns None when no row has ``row_id``. The addition happens in the
        database, so concurrent increments never overwrite each other.
        """
        if column not in COUNTER_COLUMNS:
            raise ValueError(f"Not a counter column: {column}")
        counter = getattr(model, column)
        stmt = (
            update(model)
            .where(model.id == row_id)
            .values({counter: counter + delta})
            .returning(counter)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @asynccontextmanager
    async def exclusive_access(
        self,
        kind: SubjectKind,
        subject_id: int,
        user_id: str,
    ) -> AsyncGenerator[None, None]:
        """Hold the subject's row lock for the rest of the transaction.

        Everything done inside the block (reading the ledger row, then
        inserting or deleting it) is serialized against other toggles on
        the same subject. SQLite ignores FOR UPDATE; there the BEGIN
        IMMEDIATE issued by Database gives the same guarantee.
        """
        model = SUBJECT_MODELS[kind]
        result = await self.session.execute(
            select(model.id).where(model.id == subject_id).with_for_update()
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError(subject_label(kind), subject_id)
        logger.debug("subject_locked", kind=kind.value, subject_id=subject_id, user_id=user_id)
        yield

    async def find_upvote(self, kind: SubjectKind, subject_id: int, user_id: str):
        ledger, subject_col = LEDGERS[kind]
        result = await self.session.execute(
            select(ledger)
            .where(subject_col == subject_id, ledger.user_id == user_id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add_upvote(self, kind: SubjectKind, subject_id: int, user_id: str) -> None:
        ledger, subject_col = LEDGERS[kind]
        self.session.add(ledger(**{subject_col.key: subject_id, "user_id": user_id}))
        await self.session.flush()

    async def remove_upvote(self, kind: SubjectKind, upvote_id: int) -> None:
        ledger, _ = LEDGERS[kind]
        await self.session.execute(delete(ledger).where(ledger.id == upvote_id))

    async def count_upvotes(self, kind: SubjectKind, subject_id: int) -> int:
        """Count ledger rows for a subject (consistency checks only)."""
        ledger, subject_col = LEDGERS[kind]
        result = await self.session.execute(
            select(func.count()).select_from(ledger).where(subject_col == subject_id)
        )
        return result.scalar() or 0
