"""Comment endpoints — replies, upvotes and paging through deeper threads."""

from fastapi import APIRouter, Depends, Form

from linkboard.auth import get_current_user, get_current_user_optional
from linkboard.models import User
from linkboard.routes.common import (
    get_comment_engine,
    get_listing_engine,
    get_vote_engine,
    pagination_params,
)
from linkboard.schemas import (
    CommentCreateForm,
    CommentItem,
    CommentVoteResult,
    PaginatedResponse,
    PaginationQuery,
    SuccessResponse,
    UpvoteRef,
    parse_form,
)
from linkboard.services.comment_service import CommentInsertionEngine
from linkboard.services.listing_service import ListingEngine
from linkboard.services.voting_service import VoteToggleEngine

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("/{comment_id}", response_model=SuccessResponse[CommentItem])
async def reply_to_comment(
    comment_id: int,
    content: str = Form(""),
    engine: CommentInsertionEngine = Depends(get_comment_engine),
    user: User = Depends(get_current_user),
):
    """Reply to a comment. The reply joins the parent's post."""
    form = parse_form(CommentCreateForm, content=content)
    comment = await engine.create_comment(None, comment_id, user, form.content)
    return SuccessResponse[CommentItem](message="Comment Created", data=comment)


@router.post("/{comment_id}/upvote", response_model=SuccessResponse[CommentVoteResult])
async def upvote_comment(
    comment_id: int,
    engine: VoteToggleEngine = Depends(get_vote_engine),
    user: User = Depends(get_current_user),
):
    """Toggle the caller's upvote on a comment."""
    result = await engine.toggle_comment_vote(comment_id, user.id)
    upvotes = [UpvoteRef(user_id=user.id)] if result.is_upvoted else []
    return SuccessResponse[CommentVoteResult](
        message="Comment updated",
        data=CommentVoteResult(count=result.points, comment_upvotes=upvotes),
    )


@router.get("/{comment_id}/comments", response_model=PaginatedResponse[CommentItem])
async def list_replies(
    comment_id: int,
    pagination: PaginationQuery = Depends(pagination_params),
    engine: ListingEngine = Depends(get_listing_engine),
    user: User | None = Depends(get_current_user_optional),
):
    page = await engine.list_comment_replies(
        comment_id,
        pagination.sort,
        page=pagination.page,
        limit=pagination.limit,
        viewer_id=user.id if user else None,
    )
    return PaginatedResponse[CommentItem].from_page("Comments fetched", page)
