"""Tests for the comment insertion engine."""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from linkboard.exceptions import InternalError, NotFoundError
from linkboard.models import Comment, Post
from linkboard.repository import LedgerRepository
from linkboard.services.comment_service import CommentInsertionEngine


class TestTopLevelComments:

    @pytest.mark.asyncio
    async def test_creates_comment_and_bumps_post(self, db, make_user, make_post, fetch):
        author = await make_user("carol")
        post = await make_post(author)

        comment = await CommentInsertionEngine(db).create_comment(post.id, None, author, "Nice link")

        assert comment.post_id == post.id
        assert comment.parent_comment_id is None
        assert comment.depth == 0
        assert comment.points == 0
        assert comment.comment_count == 0
        assert comment.child_comments == []
        assert comment.comment_upvotes == []
        assert comment.author.username == "carol"
        assert comment.author.id == author.id
        assert (await fetch(Post, post.id)).comment_count == 1

    @pytest.mark.asyncio
    async def test_missing_post_leaves_no_comment(self, db, make_user):
        author = await make_user()

        with pytest.raises(NotFoundError) as exc_info:
            await CommentInsertionEngine(db).create_comment(555, None, author, "Hello there")

        assert exc_info.value.message == "Post not found"
        async with db.session() as session:
            count = (await session.execute(select(func.count()).select_from(Comment))).scalar()
        assert count == 0


class TestReplies:

    @pytest.mark.asyncio
    async def test_reply_bumps_parent_and_post(self, db, make_user, make_post, fetch):
        author = await make_user()
        post = await make_post(author)
        engine = CommentInsertionEngine(db)
        parent = await engine.create_comment(post.id, None, author, "Top level")

        reply = await engine.create_comment(None, parent.id, author, "A reply")

        assert reply.depth == 1
        assert reply.parent_comment_id == parent.id
        assert reply.post_id == post.id
        assert (await fetch(Comment, parent.id)).comment_count == 1
        assert (await fetch(Post, post.id)).comment_count == 2

    @pytest.mark.asyncio
    async def test_reply_uses_parents_post(self, db, make_user, make_post, fetch):
        author = await make_user()
        post = await make_post(author)
        other = await make_post(author, title="Another post")
        engine = CommentInsertionEngine(db)
        parent = await engine.create_comment(post.id, None, author, "Top level")

        reply = await engine.create_comment(other.id, parent.id, author, "Misdirected reply")

        assert reply.post_id == post.id
        assert (await fetch(Post, other.id)).comment_count == 0
        assert (await fetch(Post, post.id)).comment_count == 2

    @pytest.mark.asyncio
    async def test_depth_grows_with_nesting(self, db, make_user, make_post):
        author = await make_user()
        post = await make_post(author)
        engine = CommentInsertionEngine(db)

        comment = await engine.create_comment(post.id, None, author, "depth zero")
        for expected in range(1, 4):
            comment = await engine.create_comment(None, comment.id, author, f"depth {expected}")
            assert comment.depth == expected

    @pytest.mark.asyncio
    async def test_missing_parent_changes_nothing(self, db, make_user, make_post, fetch):
        author = await make_user()
        post = await make_post(author)

        with pytest.raises(NotFoundError) as exc_info:
            await CommentInsertionEngine(db).create_comment(post.id, 31337, author, "Orphan reply")

        assert exc_info.value.message == "Comment not found"
        assert (await fetch(Post, post.id)).comment_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_replies_are_all_counted(self, db, make_user, make_post, fetch):
        author = await make_user()
        post = await make_post(author)
        engine = CommentInsertionEngine(db)
        parent = await engine.create_comment(post.id, None, author, "Popular comment")

        await asyncio.gather(
            *(engine.create_comment(None, parent.id, author, f"reply {i}") for i in range(6))
        )

        assert (await fetch(Comment, parent.id)).comment_count == 6
        assert (await fetch(Post, post.id)).comment_count == 7


class TestIdsAndStoreFailures:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("post_id", [None, 0, 2**31, 10**20])
    async def test_unstorable_post_id_is_not_found(self, db, make_user, post_id):
        author = await make_user()

        with pytest.raises(NotFoundError) as exc_info:
            await CommentInsertionEngine(db).create_comment(post_id, None, author, "Hello there")

        assert exc_info.value.message == "Post not found"

    @pytest.mark.asyncio
    async def test_unstorable_parent_id_is_not_found(self, db, make_user, make_post, fetch):
        author = await make_user()
        post = await make_post(author)

        with pytest.raises(NotFoundError) as exc_info:
            await CommentInsertionEngine(db).create_comment(post.id, 3_000_000_000, author, "Reply")

        assert exc_info.value.message == "Comment not found"
        assert (await fetch(Post, post.id)).comment_count == 0

    @pytest.mark.asyncio
    async def test_store_failure_becomes_internal_error(self, db, make_user, make_post, fetch, monkeypatch):
        author = await make_user()
        post = await make_post(author)

        async def broken_increment(self, model, row_id, column, delta):
            raise OperationalError("UPDATE posts", {}, Exception("disk I/O error"))

        monkeypatch.setattr(LedgerRepository, "increment_counter", broken_increment)

        with pytest.raises(InternalError) as exc_info:
            await CommentInsertionEngine(db).create_comment(post.id, None, author, "Lost comment")

        assert exc_info.value.message == "Error creating comment"
        assert exc_info.value.status_code == 500
        async with db.session() as session:
            assert (await session.execute(select(func.count()).select_from(Comment))).scalar() == 0
