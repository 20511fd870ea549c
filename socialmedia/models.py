"""Domain models persisted in the JSON backing store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


def serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def parse_datetime(value: str) -> datetime:
    # Older interpreters reject the "Z" suffix written by other JSON encoders.
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class User:
    """A user account keyed by its email address."""

    email: str
    password: str
    name: str
    age: int
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "createdAt": serialize_datetime(self.created_at),
            "email": self.email,
            "password": self.password,
            "name": self.name,
            "age": self.age,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "User":
        return User(
            email=str(data["email"]),
            password=str(data.get("password", "")),
            name=str(data.get("name", "")),
            age=int(data.get("age", 0)),
            created_at=parse_datetime(str(data["createdAt"])),
        )


@dataclass(frozen=True)
class Post:
    """A text post attached to a user's email."""

    id: str
    user_email: str
    text: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": serialize_datetime(self.created_at),
            "userEmail": self.user_email,
            "text": self.text,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Post":
        return Post(
            id=str(data["id"]),
            user_email=str(data.get("userEmail", "")),
            text=str(data.get("text", "")),
            created_at=parse_datetime(str(data["createdAt"])),
        )


@dataclass
class DatabaseSchema:
    """The complete contents of the backing store."""

    users: Dict[str, User] = field(default_factory=dict)
    posts: Dict[str, Post] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "users": {email: user.to_dict() for email, user in self.users.items()},
            "posts": {post_id: post.to_dict() for post_id, post in self.posts.items()},
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "DatabaseSchema":
        if not isinstance(data, dict):
            raise ValueError("Store must contain a JSON object")
        # Only an explicit null stands for an empty collection.
        users_raw = data.get("users")
        if users_raw is None:
            users_raw = {}
        posts_raw = data.get("posts")
        if posts_raw is None:
            posts_raw = {}
        if not isinstance(users_raw, dict) or not isinstance(posts_raw, dict):
            raise ValueError("'users' and 'posts' must be JSON objects")
        return DatabaseSchema(
            users={email: User.from_dict(item) for email, item in users_raw.items()},
            posts={post_id: Post.from_dict(item) for post_id, item in posts_raw.items()},
        )


__all__ = ["DatabaseSchema", "Post", "User", "parse_datetime", "serialize_datetime"]
