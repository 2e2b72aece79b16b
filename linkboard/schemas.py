"""Pydantic v2 request forms, response DTOs and the success envelope."""

import math
from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from linkboard.exceptions import ValidationError

T = TypeVar("T")


class CamelModel(BaseModel):
    """Serialises with camelCase keys, accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


_http_url = TypeAdapter(HttpUrl)

FormT = TypeVar("FormT", bound=BaseModel)


def parse_form(form_cls: type[FormT], **values) -> FormT:
    """Validate submitted form fields, raising a form-flagged ValidationError."""
    try:
        return form_cls(**values)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        message = first.get("msg", "Invalid value").removeprefix("Value error, ")
        raise ValidationError(f"{field}: {message}" if field else message, field=field) from e


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------


class LoginForm(BaseModel):
    username: str = Field(..., min_length=3, max_length=31, pattern=r"^[a-zA-Z0-9_]+$")
    password: str = Field(..., min_length=3, max_length=255)


class PostCreateForm(BaseModel):
    title: str = Field(..., min_length=3, max_length=300)
    url: str | None = None
    content: str | None = Field(default=None, max_length=40_000)

    @field_validator("title", "url", "content", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("url")
    @classmethod
    def _http_only(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                _http_url.validate_python(value)
            except PydanticValidationError:
                raise ValueError("must be a valid http(s) URL") from None
        return value

    @model_validator(mode="after")
    def _url_or_content(self) -> "PostCreateForm":
        if self.url is None and self.content is None:
            raise ValueError("Either url or content must be provided")
        return self


class CommentCreateForm(BaseModel):
    content: str = Field(..., min_length=3, max_length=10_000)


# ---------------------------------------------------------------------------
# Listing parameters
# ---------------------------------------------------------------------------


SortBy = Literal["points", "recent"]
SortOrder = Literal["asc", "desc"]


class SortSpec(BaseModel):
    by: SortBy = "points"
    order: SortOrder = "desc"


class PostFilters(BaseModel):
    author: str | None = None
    site: str | None = None


class PaginationQuery(BaseModel):
    limit: int = Field(default=10, ge=1, le=100)
    page: int = Field(default=1, ge=1)
    sort_by: SortBy = "points"
    order: SortOrder = "desc"

    @property
    def sort(self) -> SortSpec:
        return SortSpec(by=self.sort_by, order=self.order)


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------


class AuthorRef(CamelModel):
    id: str
    username: str


class UpvoteRef(CamelModel):
    user_id: str


class PostItem(CamelModel):
    id: int
    title: str
    url: str | None
    content: str | None
    points: int
    comment_count: int
    created_at: datetime
    author: AuthorRef
    is_upvoted: bool

    @classmethod
    def from_row(cls, post, author_username: str, is_upvoted: bool) -> "PostItem":
        return cls(
            id=post.id,
            title=post.title,
            url=post.url,
            content=post.content,
            points=post.points,
            comment_count=post.comment_count,
            created_at=post.created_at,
            author=AuthorRef(id=post.user_id, username=author_username),
            is_upvoted=is_upvoted,
        )


class CommentItem(CamelModel):
    id: int
    user_id: str
    post_id: int
    parent_comment_id: int | None
    content: str
    points: int
    depth: int
    comment_count: int
    created_at: datetime
    author: AuthorRef
    comment_upvotes: list[UpvoteRef]
    child_comments: list["CommentItem"]

    @classmethod
    def from_row(
        cls,
        comment,
        author_username: str,
        viewer_id: str | None = None,
        is_upvoted: bool = False,
        child_comments: list["CommentItem"] | None = None,
    ) -> "CommentItem":
        upvotes = [UpvoteRef(user_id=viewer_id)] if (viewer_id and is_upvoted) else []
        return cls(
            id=comment.id,
            user_id=comment.user_id,
            post_id=comment.post_id,
            parent_comment_id=comment.parent_comment_id,
            content=comment.content,
            points=comment.points,
            depth=comment.depth,
            comment_count=comment.comment_count,
            created_at=comment.created_at,
            author=AuthorRef(id=comment.user_id, username=author_username),
            comment_upvotes=upvotes,
            child_comments=list(child_comments or []),
        )


class Page(BaseModel, Generic[T]):
    """One page of results plus the numbers needed to build the envelope."""

    items: list[T]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


class PostCreated(CamelModel):
    post_id: int


class PostVoteResult(CamelModel):
    count: int
    is_upvoted: bool


class CommentVoteResult(CamelModel):
    count: int
    comment_upvotes: list[UpvoteRef]


class UsernameData(CamelModel):
    username: str


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class Pagination(CamelModel):
    page: int
    total_pages: int


class MessageResponse(CamelModel):
    success: Literal[True] = True
    message: str


class SuccessResponse(CamelModel, Generic[T]):
    success: Literal[True] = True
    message: str
    data: T


class PaginatedResponse(CamelModel, Generic[T]):
    success: Literal[True] = True
    message: str
    data: list[T]
    pagination: Pagination

    @classmethod
    def from_page(cls, message: str, page: Page) -> "PaginatedResponse":
        return cls(
            success=True,
            message=message,
            data=page.items,
            pagination=Pagination(page=page.page, total_pages=page.total_pages),
        )

