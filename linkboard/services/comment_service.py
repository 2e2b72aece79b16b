"""Comment insertion: creates comments and bumps post/parent reply counters."""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from linkboard.database import Database
from linkboard.exceptions import InternalError, NotFoundError
from linkboard.logging_config import get_logger
from linkboard.models import Comment, Post, User
from linkboard.repository import LedgerRepository, is_row_id
from linkboard.schemas import CommentItem

logger = get_logger(__name__)


class CommentInsertionEngine:
    """Inserts comments so that reply counters count each one exactly once."""

    def __init__(self, db: Database):
        self.db = db

    async def create_comment(
        self,
        post_id: int | None,
        parent_comment_id: int | None,
        author: User,
        content: str,
    ) -> CommentItem:
        """
        Create a top-level comment on ``post_id`` or a reply to ``parent_comment_id``.

        For replies the root post is taken from the parent, whatever
        ``post_id`` the caller passed. Counter bumps and the insert share
        one transaction; a missing post or parent raises NotFoundError and
        leaves no trace. Store failures surface as InternalError.
        """
        if parent_comment_id is not None:
            if not is_row_id(parent_comment_id):
                raise NotFoundError("Comment", parent_comment_id)
        elif not is_row_id(post_id):
            raise NotFoundError("Post", post_id)

        try:
            async with self.db.transaction() as session:
                comment = await self._insert(session, post_id, parent_comment_id, author, content)
        except SQLAlchemyError as e:
            logger.error(
                "comment_insert_failed",
                post_id=post_id,
                parent_comment_id=parent_comment_id,
                error=str(e),
            )
            raise InternalError("Error creating comment") from e

        logger.info(
            "comment_created",
            comment_id=comment.id,
            post_id=comment.post_id,
            parent_comment_id=parent_comment_id,
            depth=comment.depth,
            user_id=author.id,
        )
        return CommentItem.from_row(comment, author_username=author.username)

    async def _insert(
        self,
        session: AsyncSession,
        post_id: int | None,
        parent_comment_id: int | None,
        author: User,
        content: str,
    ) -> Comment:
        repo = LedgerRepository(session)
        depth = 0

        if parent_comment_id is not None:
            result = await session.execute(
                select(Comment.post_id, Comment.depth).where(Comment.id == parent_comment_id)
            )
            parent = result.one_or_none()
            if parent is None:
                raise NotFoundError("Comment", parent_comment_id)
            post_id = parent.post_id
            depth = parent.depth + 1

            replies = await repo.increment_counter(Comment, parent_comment_id, "comment_count", 1)
            if replies is None:
                raise NotFoundError("Comment", parent_comment_id)

        post_comments = await repo.increment_counter(Post, post_id, "comment_count", 1)
        if post_comments is None:
            raise NotFoundError("Post", post_id)

        comment = Comment(
            user_id=author.id,
            post_id=post_id,
            parent_comment_id=parent_comment_id,
            content=content,
            depth=depth,
            points=0,
            comment_count=0,
        )
        session.add(comment)
        await session.flush()
        await session.refresh(comment)
        return comment
