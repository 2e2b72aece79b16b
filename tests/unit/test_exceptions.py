"""Tests for the error taxonomy and its HTTP handlers."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from linkboard.config import Settings
from linkboard.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    register_exception_handlers,
)


@pytest.mark.parametrize(
    "error,status,form",
    [
        (ValidationError("title: too short", field="title"), 400, True),
        (UnauthorizedError(), 401, False),
        (NotFoundError("Post", 3), 404, False),
        (ConflictError("Username already used"), 409, False),
        (InternalError(), 500, False),
    ],
)
def test_status_mapping(error, status, form):
    assert error.status_code == status
    assert error.is_form_error is form


def _app(environment: str) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app, Settings(_env_file=None, environment=environment))

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Post", 1)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    @app.get("/typed")
    async def typed(n: int):
        return {"n": n}

    return app


async def _get(app: FastAPI, path: str):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        return await client.get(path)


class TestHandlers:

    @pytest.mark.asyncio
    async def test_domain_error_envelope(self):
        response = await _get(_app("test"), "/missing")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Post not found", "isFormError": False}

    @pytest.mark.asyncio
    async def test_request_validation_is_form_error(self):
        response = await _get(_app("test"), "/typed?n=abc")

        assert response.status_code == 400
        assert response.json()["isFormError"] is True

    @pytest.mark.asyncio
    async def test_unknown_route_uses_envelope(self):
        response = await _get(_app("test"), "/nowhere")

        assert response.status_code == 404
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_unexpected_error_hidden_in_production(self):
        response = await _get(_app("production"), "/boom")

        assert response.status_code == 500
        assert response.json()["error"] == "Internal Server Error"

    @pytest.mark.asyncio
    async def test_unexpected_error_detailed_in_development(self):
        response = await _get(_app("development"), "/boom")

        assert response.status_code == 500
        assert "kaboom" in response.json()["error"]
