"""
tests/test_store.py -- UserStore repository tests against a file-backed SQLite DB.
"""

from __future__ import annotations

import pytest

from auth.store import UserExistsError, UserNotFoundError, UserStore


def test_create_and_find(user_store: UserStore) -> None:
    created = user_store.create_user(" New@Example.com ", " NewUser ", "salt:key")
    assert created.id is not None
    assert created.email == "new@example.com"
    assert created.username == "newuser"
    assert created.display_name == "newuser"

    by_email = user_store.find_by_email("NEW@example.COM")
    by_username = user_store.find_by_username("NEWUSER")
    assert by_email == by_username
    assert by_email.password_hash == "salt:key"
    assert by_email.created_at


def test_find_missing_returns_none(user_store: UserStore) -> None:
    assert user_store.find_by_email("nobody@example.com") is None
    assert user_store.find_by_username("nobody") is None


def test_duplicate_email_rejected(user_store: UserStore) -> None:
    user_store.create_user("dup@example.com", "first", "s:k")
    with pytest.raises(UserExistsError) as excinfo:
        user_store.create_user("DUP@example.com", "second", "s:k")
    assert excinfo.value.field == "email"


def test_duplicate_username_rejected(user_store: UserStore) -> None:
    user_store.create_user("one@example.com", "samename", "s:k")
    with pytest.raises(UserExistsError) as excinfo:
        user_store.create_user("two@example.com", "SameName", "s:k")
    assert excinfo.value.field == "username"


def test_update_password_replaces_record(user_store: UserStore) -> None:
    user_store.create_user("pw@example.com", "pwuser", "old:record")
    user_store.update_password("PW@example.com", "new:record")
    assert user_store.find_by_email("pw@example.com").password_hash == "new:record"


def test_update_password_unknown_user(user_store: UserStore) -> None:
    with pytest.raises(UserNotFoundError):
        user_store.update_password("ghost@example.com", "new:record")


def test_data_survives_reopen(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'reopen.db'}"
    store = UserStore(db_url=url)
    store.create_user("keep@example.com", "keeper", "s:k")
    store.close()

    reopened = UserStore(db_url=url)
    try:
        assert reopened.find_by_username("keeper").email == "keep@example.com"
    finally:
        reopened.close()


def test_insert_race_reports_username_collision(user_store: UserStore, monkeypatch: pytest.MonkeyPatch) -> None:
    """A concurrent insert that wins on username must not be reported as an email clash."""
    user_store.create_user("first@example.com", "racer", "s:k")
    # Pre-check misses the row, as it would when the other insert lands after it.
    monkeypatch.setattr(user_store, "find_by_username", lambda username: None)
    with pytest.raises(UserExistsError) as excinfo:
        user_store.create_user("second@example.com", "racer", "s:k")
    assert excinfo.value.field == "username"


def test_insert_race_reports_email_collision(user_store: UserStore, monkeypatch: pytest.MonkeyPatch) -> None:
    user_store.create_user("same@example.com", "firstname", "s:k")
    real_find = user_store.find_by_email
    calls = []

    def find_missing_once(email: str):
        calls.append(email)
        return None if len(calls) == 1 else real_find(email)

    monkeypatch.setattr(user_store, "find_by_email", find_missing_once)
    with pytest.raises(UserExistsError) as excinfo:
        user_store.create_user("same@example.com", "secondname", "s:k")
    assert excinfo.value.field == "email"


def test_update_avatar_sets_and_clears(user_store: UserStore) -> None:
    user_store.create_user("pic@example.com", "picuser", "s:k")
    updated = user_store.update_avatar("PIC@example.com", "data:image/png;base64,AAAA")
    assert updated.avatar_data_url == "data:image/png;base64,AAAA"
    assert user_store.update_avatar("pic@example.com", None).avatar_data_url is None


def test_update_avatar_unknown_user(user_store: UserStore) -> None:
    with pytest.raises(UserNotFoundError):
        user_store.update_avatar("ghost@example.com", None)
