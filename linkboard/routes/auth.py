"""Authentication endpoints — signup, login, logout and the current user."""

from fastapi import APIRouter, Depends, Form, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from linkboard.auth import (
    SessionContext,
    SessionGate,
    generate_user_id,
    get_current_user,
    get_session_context,
    get_session_gate,
    hash_password,
    verify_password,
)
from linkboard.exceptions import ConflictError, UnauthorizedError
from linkboard.logging_config import get_logger
from linkboard.models import User
from linkboard.schemas import LoginForm, MessageResponse, SuccessResponse, UsernameData, parse_form

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    response: Response,
    username: str = Form(""),
    password: str = Form(""),
    gate: SessionGate = Depends(get_session_gate),
):
    """Register a new user and log them in."""
    form = parse_form(LoginForm, username=username, password=password)
    user = User(
        id=generate_user_id(),
        username=form.username,
        password_hash=hash_password(form.password, gate.settings.bcrypt_rounds),
    )

    try:
        async with gate.db.transaction() as session:
            existing = await session.execute(select(User.id).where(User.username == form.username))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError("Username already used")
            session.add(user)
    except IntegrityError:
        raise ConflictError("Username already used") from None

    token, stored = await gate.create_session(user.id)
    gate.set_cookie(response, token, stored.expires_at)

    logger.info("user_registered", username=user.username, user_id=user.id)
    return MessageResponse(message="User Created")


@router.post("/login", response_model=MessageResponse)
async def login(
    response: Response,
    username: str = Form(""),
    password: str = Form(""),
    gate: SessionGate = Depends(get_session_gate),
):
    """Login with username and password."""
    form = parse_form(LoginForm, username=username, password=password)

    async with gate.db.session() as session:
        result = await session.execute(select(User).where(User.username == form.username))
        user = result.scalar_one_or_none()

    if user is None:
        raise UnauthorizedError("Incorrect username")
    if not verify_password(form.password, user.password_hash):
        raise UnauthorizedError("Incorrect password")

    token, stored = await gate.create_session(user.id)
    gate.set_cookie(response, token, stored.expires_at)

    logger.info("user_login", username=user.username, user_id=user.id)
    return MessageResponse(message="Logged in")


@router.get("/logout")
async def logout(
    context: SessionContext = Depends(get_session_context),
    gate: SessionGate = Depends(get_session_gate),
):
    """Invalidate the current session and send the browser home."""
    redirect = RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
    if context.session is not None:
        await gate.invalidate_session(context.session.id)
        logger.info("user_logout", user_id=context.user.id)
    gate.clear_cookie(redirect)
    return redirect


@router.get("/user", response_model=SuccessResponse[UsernameData])
async def get_user(user: User = Depends(get_current_user)):
    """Get the logged-in user's username."""
    return SuccessResponse[UsernameData](message="User fetched", data=UsernameData(username=user.username))
