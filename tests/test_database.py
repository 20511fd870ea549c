from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from socialmedia.database import (
    ConflictError,
    Database,
    DecodeError,
    NotFoundError,
    StorageError,
    ValidationError,
)


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "db.json")
    db.ensure_database()
    return db


def test_ensure_database_creates_empty_store(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "db.json"
    db = Database(path)

    assert db.ensure_database() is True
    assert json.loads(path.read_text(encoding="utf-8")) == {"users": {}, "posts": {}}


def test_ensure_database_keeps_existing_store(database: Database) -> None:
    database.create_user("a@b.com", "p", "A", 20)

    assert database.ensure_database() is False
    assert database.get_user("a@b.com").name == "A"


def test_create_user_rejects_duplicate_email(database: Database) -> None:
    original = database.create_user("a@b.com", "p", "A", 20)

    with pytest.raises(ConflictError, match="User already exists"):
        database.create_user("a@b.com", "other", "B", 40)

    assert database.get_user("a@b.com") == original


def test_age_threshold(database: Database) -> None:
    with pytest.raises(ValidationError, match="age must be at least 18 years old"):
        database.create_user("young@b.com", "p", "Young", 17)

    user = database.create_user("adult@b.com", "p", "Adult", 18)
    assert user.age == 18


@pytest.mark.parametrize(
    ("email", "password", "message"),
    [
        ("", "p", "email can't be empty"),
        ("a@b.com", "", "password can't be empty"),
    ],
)
def test_create_user_requires_email_and_password(
    database: Database, email: str, password: str, message: str
) -> None:
    with pytest.raises(ValidationError, match=message):
        database.create_user(email, password, "A", 20)

    assert database.list_users() == []


def test_get_user_returns_original_record(database: Database) -> None:
    created = database.create_user("a@b.com", "p", "A", 20)

    fetched = database.get_user("a@b.com")

    assert fetched.email == "a@b.com"
    assert fetched.created_at == created.created_at


def test_update_user_preserves_key_and_creation_time(database: Database) -> None:
    created = database.create_user("a@b.com", "p", "A", 20)

    updated = database.update_user("a@b.com", "new-pass", "Alice", 33)

    assert updated.email == "a@b.com"
    assert updated.created_at == created.created_at
    assert (updated.password, updated.name, updated.age) == ("new-pass", "Alice", 33)
    assert database.get_user("a@b.com") == updated


def test_update_missing_user_fails(database: Database) -> None:
    with pytest.raises(NotFoundError):
        database.update_user("ghost@b.com", "p", "Ghost", 30)


def test_delete_user_is_idempotent(database: Database) -> None:
    database.delete_user("nobody@b.com")

    with pytest.raises(NotFoundError):
        database.get_user("nobody@b.com")

    database.create_user("a@b.com", "p", "A", 20)
    database.delete_user("a@b.com")
    database.delete_user("a@b.com")

    with pytest.raises(NotFoundError):
        database.get_user("a@b.com")


def test_create_post_requires_existing_user(database: Database) -> None:
    with pytest.raises(NotFoundError, match="User does not exist"):
        database.create_post("ghost@b.com", "hello")

    assert database.read_all().posts == {}


def test_create_post_requires_email(database: Database) -> None:
    with pytest.raises(ValidationError, match="email can't be empty"):
        database.create_post("", "hello")


def test_get_posts_filters_by_email(database: Database) -> None:
    database.create_user("a@b.com", "p", "A", 20)
    database.create_user("c@d.com", "p", "C", 20)
    first = database.create_post("a@b.com", "one")
    second = database.create_post("a@b.com", "two")
    database.create_post("c@d.com", "other")

    posts = database.get_posts("a@b.com")

    assert {post.id for post in posts} == {first.id, second.id}
    assert all(post.user_email == "a@b.com" for post in posts)
    assert database.get_posts("nobody@b.com") == []


def test_delete_post_is_idempotent(database: Database) -> None:
    database.create_user("a@b.com", "p", "A", 20)
    post = database.create_post("a@b.com", "hi")

    database.delete_post(post.id)
    database.delete_post(post.id)
    database.delete_post("missing-id")

    assert database.get_posts("a@b.com") == []


def test_deleting_user_keeps_posts(database: Database) -> None:
    database.create_user("a@b.com", "p", "A", 20)
    post = database.create_post("a@b.com", "hi")

    database.delete_user("a@b.com")

    assert database.get_posts("a@b.com") == [post]


def test_store_round_trip(database: Database, tmp_path: Path) -> None:
    database.create_user("a@b.com", "p", "A", 20)
    database.create_post("a@b.com", "hi")
    schema = database.read_all()

    copy = Database(tmp_path / "copy.json")
    copy.write_all(schema)

    assert copy.read_all() == schema


def test_reads_store_with_null_collections(tmp_path: Path) -> None:
    path = tmp_path / "db.json"
    path.write_text('{"users": null, "posts": null}', encoding="utf-8")
    db = Database(path)

    assert db.get_posts("a@b.com") == []
    db.create_user("a@b.com", "p", "A", 20)
    assert db.get_user("a@b.com").name == "A"


def test_reads_utc_timestamps_with_z_suffix(tmp_path: Path) -> None:
    path = tmp_path / "db.json"
    path.write_text(
        json.dumps(
            {
                "users": {
                    "a@b.com": {
                        "createdAt": "2023-05-01T10:20:30.123456Z",
                        "email": "a@b.com",
                        "password": "p",
                        "name": "A",
                        "age": 20,
                    }
                },
                "posts": {},
            }
        ),
        encoding="utf-8",
    )

    user = Database(path).get_user("a@b.com")

    assert user.created_at.isoformat() == "2023-05-01T10:20:30.123456+00:00"


def test_corrupt_store_raises_decode_error(tmp_path: Path) -> None:
    path = tmp_path / "db.json"
    path.write_text("{not json", encoding="utf-8")
    db = Database(path)

    with pytest.raises(DecodeError):
        db.get_user("a@b.com")
    with pytest.raises(DecodeError):
        db.create_user("a@b.com", "p", "A", 20)


def test_missing_store_raises_storage_error(tmp_path: Path) -> None:
    db = Database(tmp_path / "absent.json")

    with pytest.raises(StorageError):
        db.read_all()


def test_concurrent_creates_do_not_lose_updates(database: Database) -> None:
    emails = [f"user{index}@example.com" for index in range(20)]
    threads = [
        threading.Thread(target=database.create_user, args=(email, "p", "User", 30))
        for email in emails
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert {user.email for user in database.list_users()} == set(emails)
    assert not (database.path.parent / "db.json.tmp").exists()


@pytest.mark.parametrize("value", ["[]", "0", '""', "false"])
def test_non_object_collections_are_rejected(tmp_path: Path, value: str) -> None:
    path = tmp_path / "db.json"
    content = f'{{"users": {value}, "posts": {{}}}}'
    path.write_text(content, encoding="utf-8")
    db = Database(path)

    with pytest.raises(DecodeError):
        db.create_user("a@b.com", "p", "A", 20)

    assert path.read_text(encoding="utf-8") == content


def test_invalid_utf8_store_raises_decode_error(tmp_path: Path) -> None:
    path = tmp_path / "db.json"
    path.write_bytes(b'{"users": {"\xff": 1}, "posts": {}}')
    db = Database(path)

    with pytest.raises(DecodeError):
        db.get_user("a@b.com")


def test_failed_write_removes_temporary_file(database: Database, monkeypatch) -> None:
    database.create_user("a@b.com", "p", "A", 20)
    before = database.path.read_bytes()

    def failing_replace(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr("socialmedia.database.os.replace", failing_replace)

    with pytest.raises(StorageError):
        database.create_user("c@d.com", "p", "C", 30)

    assert not (database.path.parent / "db.json.tmp").exists()
    assert database.path.read_bytes() == before
