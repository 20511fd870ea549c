"""FastAPI application exposing CRUD endpoints for users and posts."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

import anyio
from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .config import load_settings
from .database import Database, DatabaseError, StorageError
from .models import Post, User

logger = logging.getLogger("socialmedia.api")

ALLOWED_METHODS = "POST, GET, OPTIONS, PUT, DELETE"

_SAMPLE_USER_EMAIL = "test@example.com"


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(strict=True)

    email: str = ""
    password: str = ""
    name: str = ""
    age: int = 0


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(strict=True)

    password: str = ""
    name: str = ""
    age: int = 0


class CreatePostRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, strict=True)

    user_email: str = Field(default="", alias="userEmail")
    text: str = ""


class UserResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    created_at: datetime = Field(alias="createdAt")
    email: str
    password: str
    name: str
    age: int


class PostResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_at: datetime = Field(alias="createdAt")
    user_email: str = Field(alias="userEmail")
    text: str


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        created_at=user.created_at,
        email=user.email,
        password=user.password,
        name=user.name,
        age=user.age,
    )


def post_to_response(post: Post) -> PostResponse:
    return PostResponse(
        id=post.id,
        created_at=post.created_at,
        user_email=post.user_email,
        text=post.text,
    )


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _format_validation_error(exc: RequestValidationError) -> str:
    messages: List[str] = []
    for error in exc.errors():
        # Integer parts are list indexes or JSON decode offsets.
        location = ".".join(part for part in error.get("loc", ())[1:] if isinstance(part, str))
        message = str(error.get("msg", "invalid request"))
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "invalid request body"


class JSONHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp every response with the JSON content type and allowed methods."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["Content-Type"] = "application/json"
        response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        return response


def create_app(
    *,
    database: Database | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    if database is None:
        settings = load_settings()
        database = Database(settings.database_path)
        initialize_database = True

    if initialize_database:
        try:
            database.ensure_database()
        except StorageError:
            # Serve anyway; every request reports the storage failure.
            logger.exception("Failed to initialise JSON store at %s", database.path)

    app = FastAPI(
        title="socialmedia",
        description="CRUD API for users and posts stored in a single JSON file",
        version="1.0.0",
    )
    app.add_middleware(JSONHeadersMiddleware)
    app.state.database = database

    def get_db() -> Database:
        return database

    @app.get("/", response_model=UserResponse)
    async def sample_user() -> UserResponse:
        return UserResponse(
            created_at=datetime(1, 1, 1, tzinfo=timezone.utc),
            email=_SAMPLE_USER_EMAIL,
            password="",
            name="",
            age=0,
        )

    @app.get("/err")
    async def sample_error() -> JSONResponse:
        logger.warning("server error")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "server error")

    @app.get("/users", response_model=UserResponse)
    async def read_user_without_email(db: Database = Depends(get_db)) -> UserResponse:
        return await read_user("", db)

    @app.get("/users/{email}", response_model=UserResponse)
    async def read_user(email: str, db: Database = Depends(get_db)) -> UserResponse:
        user = await anyio.to_thread.run_sync(db.get_user, email)
        return user_to_response(user)

    @app.post("/users", status_code=status.HTTP_201_CREATED)
    async def create_user(payload: CreateUserRequest, db: Database = Depends(get_db)) -> Response:
        await anyio.to_thread.run_sync(
            db.create_user, payload.email, payload.password, payload.name, payload.age
        )
        return Response(status_code=status.HTTP_201_CREATED)

    @app.put("/users/{email}", response_model=UserResponse)
    async def update_user(
        email: str,
        payload: UpdateUserRequest,
        db: Database = Depends(get_db),
    ) -> UserResponse:
        user = await anyio.to_thread.run_sync(
            db.update_user, email, payload.password, payload.name, payload.age
        )
        return user_to_response(user)

    @app.delete("/users/{email}")
    async def delete_user(email: str, db: Database = Depends(get_db)) -> Dict[str, Any]:
        await anyio.to_thread.run_sync(db.delete_user, email)
        return {}

    @app.get("/posts", response_model=List[PostResponse])
    async def list_posts_without_email(db: Database = Depends(get_db)) -> List[PostResponse]:
        return await list_posts("", db)

    @app.get("/posts/{email}", response_model=List[PostResponse])
    async def list_posts(email: str, db: Database = Depends(get_db)) -> List[PostResponse]:
        posts = await anyio.to_thread.run_sync(db.get_posts, email)
        return [post_to_response(post) for post in posts]

    @app.post("/posts", status_code=status.HTTP_201_CREATED)
    async def create_post(payload: CreatePostRequest, db: Database = Depends(get_db)) -> Response:
        await anyio.to_thread.run_sync(db.create_post, payload.user_email, payload.text)
        return Response(status_code=status.HTTP_201_CREATED)

    @app.delete("/posts/{post_id}")
    async def delete_post(post_id: str, db: Database = Depends(get_db)) -> Dict[str, Any]:
        await anyio.to_thread.run_sync(db.delete_post, post_id)
        return {}

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        message = _format_validation_error(exc)
        logger.warning("%s %s rejected: %s", request.method, request.url.path, message)
        return error_response(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            logger.warning("%s %s: method not supported", request.method, request.url.path)
            return error_response(status.HTTP_404_NOT_FOUND, "method not supported")
        return error_response(exc.status_code, str(exc.detail))

    return app


__all__ = ["create_app", "post_to_response", "user_to_response"]
