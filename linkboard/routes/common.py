"""Dependencies shared by the post and comment routers."""

from fastapi import Depends, Query, Request

from linkboard.database import Database, get_database
from linkboard.schemas import PaginationQuery, SortBy, SortOrder
from linkboard.services.comment_service import CommentInsertionEngine
from linkboard.services.listing_service import ListingEngine
from linkboard.services.voting_service import VoteToggleEngine


def get_vote_engine(db: Database = Depends(get_database)) -> VoteToggleEngine:
    return VoteToggleEngine(db)


def get_comment_engine(db: Database = Depends(get_database)) -> CommentInsertionEngine:
    return CommentInsertionEngine(db)


def get_listing_engine(
    request: Request,
    db: Database = Depends(get_database),
) -> ListingEngine:
    return ListingEngine(
        db, expand_children_limit=request.app.state.settings.comment_children_preview
    )


def pagination_params(
    limit: int = Query(10, ge=1, le=100),
    page: int = Query(1, ge=1),
    sort_by: SortBy = Query("points", alias="sortBy"),
    order: SortOrder = Query("desc"),
) -> PaginationQuery:
    return PaginationQuery(limit=limit, page=page, sort_by=sort_by, order=order)
