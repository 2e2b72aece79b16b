"""Listing & pagination: sorted post and comment views with viewer vote state."""

from collections import defaultdict

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from linkboard.database import Database
from linkboard.exceptions import NotFoundError
from linkboard.logging_config import get_logger
from linkboard.models import Comment, CommentUpvote, Post, PostUpvote, User
from linkboard.repository import is_row_id
from linkboard.schemas import CommentItem, Page, PostFilters, PostItem, SortSpec

logger = get_logger(__name__)


def _order_by(sort: SortSpec, model) -> tuple:
    """ORDER BY clauses for a SortSpec; id breaks ties in the same direction."""
    column = model.points if sort.by == "points" else model.created_at
    if sort.order == "asc":
        return column.asc(), model.id.asc()
    return column.desc(), model.id.desc()


def _offset(page: int, limit: int) -> int:
    return (page - 1) * limit


class ListingEngine:
    """Read-only views over posts and comments."""

    def __init__(self, db: Database, expand_children_limit: int = 2):
        self.db = db
        self.expand_children_limit = expand_children_limit

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def _post_query(self, viewer_id: str | None):
        if viewer_id is None:
            return select(Post, User.username).join(User, User.id == Post.user_id)
        return (
            select(Post, User.username, PostUpvote.id.is_not(None).label("is_upvoted"))
            .join(User, User.id == Post.user_id)
            .outerjoin(
                PostUpvote,
                and_(PostUpvote.post_id == Post.id, PostUpvote.user_id == viewer_id),
            )
        )

    @staticmethod
    def _post_item(row, viewer_id: str | None) -> PostItem:
        is_upvoted = bool(row.is_upvoted) if viewer_id is not None else False
        return PostItem.from_row(row.Post, author_username=row.username, is_upvoted=is_upvoted)

    async def list_posts(
        self,
        filters: PostFilters,
        sort: SortSpec,
        page: int,
        limit: int,
        viewer_id: str | None = None,
    ) -> Page[PostItem]:
        """List posts matching ``filters`` (exact author id and/or exact url)."""
        conditions = []
        if filters.author:
            conditions.append(Post.user_id == filters.author)
        if filters.site:
            conditions.append(Post.url == filters.site)

        async with self.db.session() as session:
            total = (
                await session.execute(select(func.count()).select_from(Post).where(*conditions))
            ).scalar() or 0

            rows = []
            offset = _offset(page, limit)
            if offset < total:
                query = (
                    self._post_query(viewer_id)
                    .where(*conditions)
                    .order_by(*_order_by(sort, Post))
                    .offset(offset)
                    .limit(limit)
                )
                rows = (await session.execute(query)).all()

        items = [self._post_item(row, viewer_id) for row in rows]
        logger.debug("posts_listed", page=page, limit=limit, total=total, returned=len(items))
        return Page[PostItem](items=items, page=page, limit=limit, total=total)

    async def get_post(self, post_id: int, viewer_id: str | None = None) -> PostItem:
        if not is_row_id(post_id):
            raise NotFoundError("Post", post_id)
        async with self.db.session() as session:
            row = (
                await session.execute(self._post_query(viewer_id).where(Post.id == post_id))
            ).first()
        if row is None:
            raise NotFoundError("Post", post_id)
        return self._post_item(row, viewer_id)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def _comment_query(self, viewer_id: str | None):
        if viewer_id is None:
            return select(Comment, User.username).join(User, User.id == Comment.user_id)
        return (
            select(Comment, User.username, CommentUpvote.id.is_not(None).label("is_upvoted"))
            .join(User, User.id == Comment.user_id)
            .outerjoin(
                CommentUpvote,
                and_(CommentUpvote.comment_id == Comment.id, CommentUpvote.user_id == viewer_id),
            )
        )

    @staticmethod
    def _comment_item(row, viewer_id: str | None, children=None) -> CommentItem:
        is_upvoted = bool(row.is_upvoted) if viewer_id is not None else False
        return CommentItem.from_row(
            row.Comment,
            author_username=row.username,
            viewer_id=viewer_id,
            is_upvoted=is_upvoted,
            child_comments=children,
        )

    async def _page_of_comments(
        self,
        session: AsyncSession,
        condition,
        sort: SortSpec,
        page: int,
        limit: int,
        viewer_id: str | None,
    ) -> tuple[int, list]:
        total = (
            await session.execute(select(func.count()).select_from(Comment).where(condition))
        ).scalar() or 0
        offset = _offset(page, limit)
        if offset >= total:
            return total, []
        query = (
            self._comment_query(viewer_id)
            .where(condition)
            .order_by(*_order_by(sort, Comment))
            .offset(offset)
            .limit(limit)
        )
        rows = (await session.execute(query)).all()
        return total, rows

    async def _preview_children(
        self,
        session: AsyncSession,
        parent_ids: list[int],
        sort: SortSpec,
        viewer_id: str | None,
    ) -> dict[int, list[CommentItem]]:
        """First ``expand_children_limit`` direct replies of each parent, in one query."""
        children: dict[int, list[CommentItem]] = defaultdict(list)
        if not parent_ids or self.expand_children_limit <= 0:
            return children

        ranked = (
            select(
                Comment.id.label("id"),
                func.row_number()
                .over(partition_by=Comment.parent_comment_id, order_by=_order_by(sort, Comment))
                .label("rn"),
            )
            .where(Comment.parent_comment_id.in_(parent_ids))
            .subquery()
        )
        query = (
            self._comment_query(viewer_id)
            .join(ranked, ranked.c.id == Comment.id)
            .where(ranked.c.rn <= self.expand_children_limit)
            .order_by(Comment.parent_comment_id, ranked.c.rn)
        )
        for row in (await session.execute(query)).all():
            children[row.Comment.parent_comment_id].append(self._comment_item(row, viewer_id))
        return children

    async def list_top_level_comments(
        self,
        post_id: int,
        sort: SortSpec,
        page: int,
        limit: int,
        viewer_id: str | None = None,
        include_children: bool = False,
    ) -> Page[CommentItem]:
        """
        List a post's top-level comments.

        Only comments without a parent are listed and counted. With
        ``include_children`` each one carries a short preview of its direct
        replies; deeper threads are paged through ``list_comment_replies``.
        """
        if not is_row_id(post_id):
            raise NotFoundError("Post", post_id)
        async with self.db.session() as session:
            exists = await session.execute(select(Post.id).where(Post.id == post_id))
            if exists.scalar_one_or_none() is None:
                raise NotFoundError("Post", post_id)

            condition = and_(Comment.post_id == post_id, Comment.parent_comment_id.is_(None))
            total, rows = await self._page_of_comments(session, condition, sort, page, limit, viewer_id)

            previews: dict[int, list[CommentItem]] = {}
            if include_children:
                previews = await self._preview_children(
                    session, [row.Comment.id for row in rows], sort, viewer_id
                )

        items = [
            self._comment_item(row, viewer_id, children=previews.get(row.Comment.id, []))
            for row in rows
        ]
        return Page[CommentItem](items=items, page=page, limit=limit, total=total)

    async def list_comment_replies(
        self,
        comment_id: int,
        sort: SortSpec,
        page: int,
        limit: int,
        viewer_id: str | None = None,
    ) -> Page[CommentItem]:
        """Page through the direct replies of one comment."""
        if not is_row_id(comment_id):
            raise NotFoundError("Comment", comment_id)
        async with self.db.session() as session:
            exists = await session.execute(select(Comment.id).where(Comment.id == comment_id))
            if exists.scalar_one_or_none() is None:
                raise NotFoundError("Comment", comment_id)

            condition = Comment.parent_comment_id == comment_id
            total, rows = await self._page_of_comments(session, condition, sort, page, limit, viewer_id)

        items = [self._comment_item(row, viewer_id) for row in rows]
        return Page[CommentItem](items=items, page=page, limit=limit, total=total)
