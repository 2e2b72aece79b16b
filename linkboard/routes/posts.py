"""Post endpoints — submit, list, view, upvote and comment on posts."""

from fastapi import APIRouter, Depends, Form, Query
from sqlalchemy.exc import SQLAlchemyError

from linkboard.auth import get_current_user, get_current_user_optional
from linkboard.database import Database, get_database
from linkboard.exceptions import InternalError
from linkboard.logging_config import get_logger
from linkboard.models import Post, User
from linkboard.routes.common import (
    get_comment_engine,
    get_listing_engine,
    get_vote_engine,
    pagination_params,
)
from linkboard.schemas import (
    CommentCreateForm,
    CommentItem,
    PaginatedResponse,
    PaginationQuery,
    PostCreateForm,
    PostCreated,
    PostFilters,
    PostItem,
    PostVoteResult,
    SuccessResponse,
    parse_form,
)
from linkboard.services.comment_service import CommentInsertionEngine
from linkboard.services.listing_service import ListingEngine
from linkboard.services.voting_service import VoteToggleEngine

logger = get_logger(__name__)
router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", response_model=SuccessResponse[PostCreated])
async def create_post(
    title: str = Form(""),
    url: str | None = Form(None),
    content: str | None = Form(None),
    db: Database = Depends(get_database),
    user: User = Depends(get_current_user),
):
    """Submit a link and/or text post."""
    form = parse_form(PostCreateForm, title=title, url=url, content=content)

    try:
        async with db.transaction() as session:
            post = Post(user_id=user.id, title=form.title, url=form.url, content=form.content)
            session.add(post)
            await session.flush()
            post_id = post.id
    except SQLAlchemyError as e:
        logger.error("post_insert_failed", user_id=user.id, error=str(e))
        raise InternalError("Error creating post") from e

    logger.info("post_created", post_id=post_id, user_id=user.id, has_url=form.url is not None)
    return SuccessResponse[PostCreated](message="Post Created", data=PostCreated(post_id=post_id))


@router.get("", response_model=PaginatedResponse[PostItem])
async def list_posts(
    pagination: PaginationQuery = Depends(pagination_params),
    author: str | None = Query(None),
    site: str | None = Query(None),
    engine: ListingEngine = Depends(get_listing_engine),
    user: User | None = Depends(get_current_user_optional),
):
    """List posts, optionally filtered by author id and exact url."""
    page = await engine.list_posts(
        PostFilters(author=author, site=site),
        pagination.sort,
        page=pagination.page,
        limit=pagination.limit,
        viewer_id=user.id if user else None,
    )
    return PaginatedResponse[PostItem].from_page("Posts fetched", page)


@router.get("/{post_id}", response_model=SuccessResponse[PostItem])
async def get_post(
    post_id: int,
    engine: ListingEngine = Depends(get_listing_engine),
    user: User | None = Depends(get_current_user_optional),
):
    post = await engine.get_post(post_id, viewer_id=user.id if user else None)
    return SuccessResponse[PostItem](message="Post fetched", data=post)


@router.post("/{post_id}/upvote", response_model=SuccessResponse[PostVoteResult])
async def upvote_post(
    post_id: int,
    engine: VoteToggleEngine = Depends(get_vote_engine),
    user: User = Depends(get_current_user),
):
    """Toggle the caller's upvote on a post."""
    result = await engine.toggle_post_vote(post_id, user.id)
    return SuccessResponse[PostVoteResult](
        message="Post updated",
        data=PostVoteResult(count=result.points, is_upvoted=result.is_upvoted),
    )


@router.post("/{post_id}/comment", response_model=SuccessResponse[CommentItem])
async def comment_on_post(
    post_id: int,
    content: str = Form(""),
    engine: CommentInsertionEngine = Depends(get_comment_engine),
    user: User = Depends(get_current_user),
):
    """Add a top-level comment to a post."""
    form = parse_form(CommentCreateForm, content=content)
    comment = await engine.create_comment(post_id, None, user, form.content)
    return SuccessResponse[CommentItem](message="Comment Created", data=comment)


@router.get("/{post_id}/comments", response_model=PaginatedResponse[CommentItem])
async def list_post_comments(
    post_id: int,
    pagination: PaginationQuery = Depends(pagination_params),
    include_children: bool = Query(False, alias="includeChildren"),
    engine: ListingEngine = Depends(get_listing_engine),
    user: User | None = Depends(get_current_user_optional),
):
    """List a post's top-level comments, each optionally with a preview of its replies."""
    page = await engine.list_top_level_comments(
        post_id,
        pagination.sort,
        page=pagination.page,
        limit=pagination.limit,
        viewer_id=user.id if user else None,
        include_children=include_children,
    )
    return PaginatedResponse[CommentItem].from_page("Comments fetched", page)
