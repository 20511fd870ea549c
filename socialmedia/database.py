"""JSON-file persistence for users and posts."""
from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from contextlib import suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .models import DatabaseSchema, Post, User

logger = logging.getLogger("socialmedia.database")

MINIMUM_AGE = 18


class DatabaseError(Exception):
    """Base class for every failure raised by :class:`Database`."""


class ValidationError(DatabaseError):
    """Input rejected before touching the store."""


class ConflictError(DatabaseError):
    """The entity being created already exists."""


class NotFoundError(DatabaseError):
    """The referenced entity does not exist."""


class StorageError(DatabaseError):
    """The backing file could not be read or written."""


class DecodeError(DatabaseError):
    """The backing file does not contain a valid store document."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the JSON store."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "db.json").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _generate_post_id() -> str:
    return str(uuid.uuid4())


def user_is_eligible(email: str, password: str, age: int) -> None:
    if not email:
        raise ValidationError("email can't be empty")
    if not password:
        raise ValidationError("password can't be empty")
    if age < MINIMUM_AGE:
        raise ValidationError(f"age must be at least {MINIMUM_AGE} years old")


class Database:
    """Whole-file JSON store.

    Every operation reads the complete document, mutates it in memory and
    writes it back. Read-modify-write cycles are serialised through a single
    lock and each write replaces the file atomically, so concurrent requests
    inside one process can neither lose updates nor observe a torn file.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path
        self._lock = threading.RLock()
        logger.debug("Using JSON store at %s", path)

    @property
    def path(self) -> Path:
        return self._path

    def ensure_database(self) -> bool:
        """Create an empty store if the configured file does not exist yet.

        Returns ``True`` when a new file was written.
        """

        with self._lock:
            if self._path.exists():
                return False
            self.write_all(DatabaseSchema())
        logger.info("Created empty JSON store at %s", self._path)
        return True

    def read_all(self) -> DatabaseSchema:
        try:
            raw = self._path.read_bytes()
        except OSError as exc:
            raise StorageError(f"failed to read {self._path}: {exc.strerror or exc}") from exc

        try:
            return DatabaseSchema.from_dict(json.loads(raw.decode("utf-8")))
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors.
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise DecodeError(f"invalid store document in {self._path}: {exc}") from exc

    def write_all(self, schema: DatabaseSchema) -> None:
        data = json.dumps(schema.to_dict(), ensure_ascii=False)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with self._lock:
            try:
                tmp_path.write_text(data, encoding="utf-8")
                os.replace(tmp_path, self._path)
            except OSError as exc:
                with suppress(OSError):
                    tmp_path.unlink()
                raise StorageError(f"failed to write {self._path}: {exc.strerror or exc}") from exc

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def create_user(self, email: str, password: str, name: str, age: int) -> User:
        user_is_eligible(email, password, age)

        with self._lock:
            schema = self.read_all()
            if email in schema.users:
                raise ConflictError("User already exists")

            user = User(
                email=email,
                password=password,
                name=name,
                age=age,
                created_at=_current_timestamp(),
            )
            schema.users[email] = user
            self.write_all(schema)
        return user

    def update_user(self, email: str, password: str, name: str, age: int) -> User:
        """Overwrite the mutable fields of an existing user.

        The email is the primary key and ``created_at`` records the original
        insert, so neither is ever changed here.
        """

        with self._lock:
            schema = self.read_all()
            current = schema.users.get(email)
            if current is None:
                raise NotFoundError("User doesn't exist")

            user = User(
                email=current.email,
                password=password,
                name=name,
                age=age,
                created_at=current.created_at,
            )
            schema.users[email] = user
            self.write_all(schema)
        return user

    def get_user(self, email: str) -> User:
        with self._lock:
            schema = self.read_all()
        user = schema.users.get(email)
        if user is None:
            raise NotFoundError("User doesn't exist")
        return user

    def list_users(self) -> List[User]:
        with self._lock:
            schema = self.read_all()
        return list(schema.users.values())

    def delete_user(self, email: str) -> None:
        # Posts that reference the user are kept.
        with self._lock:
            schema = self.read_all()
            schema.users.pop(email, None)
            self.write_all(schema)

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------
    def create_post(self, user_email: str, text: str) -> Post:
        if not user_email:
            raise ValidationError("email can't be empty")

        with self._lock:
            schema = self.read_all()
            if user_email not in schema.users:
                raise NotFoundError("User does not exist")

            post = Post(
                id=_generate_post_id(),
                user_email=user_email,
                text=text,
                created_at=_current_timestamp(),
            )
            schema.posts[post.id] = post
            self.write_all(schema)
        return post

    def get_posts(self, user_email: str) -> List[Post]:
        with self._lock:
            schema = self.read_all()
        return [post for post in schema.posts.values() if post.user_email == user_email]

    def delete_post(self, post_id: str) -> None:
        with self._lock:
            schema = self.read_all()
            schema.posts.pop(post_id, None)
            self.write_all(schema)


__all__ = [
    "ConflictError",
    "Database",
    "DatabaseError",
    "DecodeError",
    "MINIMUM_AGE",
    "NotFoundError",
    "StorageError",
    "ValidationError",
    "resolve_database_path",
    "user_is_eligible",
]
