import os
from concurrent.futures import ThreadPoolExecutor

import pytest
from unittest.mock import patch

from ninja_chat.credential_store import CredentialStore, User
from ninja_chat.errors import AlreadyExistsError, AuthError, StorageError


# ----------------------------------------------------------------------------
# Setup
# ----------------------------------------------------------------------------

@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "data" / "users" / "user.db")


@pytest.fixture
def store(db_path):
    # Lowest bcrypt work factor keeps the tests fast
    return CredentialStore(db_path, rounds=4)


def read_lines(path):
    with open(path, encoding="utf-8") as f:
        return f.read().splitlines()


# ----------------------------------------------------------------------------
# Test initialization
# ----------------------------------------------------------------------------

def test_creates_file_and_parent_directories(store, db_path):
    assert os.path.isfile(db_path)
    assert read_lines(db_path) == []
    assert store.usernames() == []


def test_unwritable_path_raises_storage_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(StorageError):
        CredentialStore(str(blocker / "user.db"), rounds=4)


def test_load_tolerates_blank_and_malformed_lines(store, db_path):
    hashed = store.hash("pw1")
    with open(db_path, "w", encoding="utf-8") as f:
        f.write("\n")
        f.write(f"alice\t{hashed}\n")
        f.write("   \n")
        f.write("garbage-line-with-one-field\n")
        f.write(f"bob {hashed}\n")
        f.write("\n")

    reopened = CredentialStore(db_path, rounds=4)

    assert reopened.usernames() == ["alice", "bob"]
    assert reopened.authenticate("bob", "pw1")


def test_load_is_idempotent(store):
    store.create("alice", "pw1")

    store.load()
    store.load()

    assert store.usernames() == ["alice"]


# ----------------------------------------------------------------------------
# Test create() / exists()
# ----------------------------------------------------------------------------

def test_create_then_exists(store):
    assert not store.exists("alice")

    user = store.create("alice", "pw1")

    assert isinstance(user, User)
    assert user.username == "alice"
    assert store.exists("alice")


def test_create_duplicate_raises_error(store):
    store.create("alice", "pw1")

    with pytest.raises(AlreadyExistsError):
        store.create("alice", "pw2")

    assert store.usernames() == ["alice"]


def test_usernames_are_case_insensitive(store):
    store.create("Alice", "pw1")

    assert store.exists("alice")
    assert store.exists("ALICE")
    with pytest.raises(AlreadyExistsError):
        store.create("aLiCe", "pw2")


def test_create_appends_record_to_file(store, db_path):
    store.create("alice", "pw1")
    store.create("bob", "pw2")

    lines = read_lines(db_path)
    assert len(lines) == 2
    username, password_hash = lines[0].split()
    assert username == "alice"
    assert password_hash == store.get_user("alice").password_hash


def test_accounts_survive_reopen(store, db_path):
    store.create("alice", "pw1")

    reopened = CredentialStore(db_path, rounds=4)

    assert reopened.exists("alice")
    assert reopened.authenticate("alice", "pw1")


def test_failed_write_leaves_store_unchanged(store, tmp_path):
    # Appending to a directory fails with an OSError
    store.path = str(tmp_path)

    with pytest.raises(StorageError):
        store.create("alice", "pw1")

    assert not store.exists("alice")


def test_failed_sync_rolls_back_partial_record(store, db_path):
    store.create("bob", "pw0")

    with patch(
        "ninja_chat.credential_store.os.fsync",
        side_effect=OSError("disk full"),
    ):
        with pytest.raises(StorageError):
            store.create("alice", "first")

    assert not store.exists("alice")
    assert len(read_lines(db_path)) == 1

    store.create("alice", "second")
    reopened = CredentialStore(db_path, rounds=4)

    assert len(read_lines(db_path)) == 2
    assert reopened.authenticate("alice", "second")
    assert not reopened.authenticate("alice", "first")
    assert reopened.authenticate("bob", "pw0")


def test_failed_rollback_marks_store_corrupted(store):
    with patch(
        "ninja_chat.credential_store.os.fsync",
        side_effect=OSError("disk full"),
    ), patch(
        "ninja_chat.credential_store.os.truncate",
        side_effect=OSError("read-only"),
    ):
        with pytest.raises(StorageError):
            store.create("alice", "first")

    assert store.corrupted
    with pytest.raises(StorageError):
        store.create("bob", "pw")
    assert not store.exists("bob")


def test_concurrent_create_same_username_succeeds_once(store, db_path):
    def attempt(i):
        try:
            store.create("bob", f"pw{i}")
            return True
        except AlreadyExistsError:
            return False

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(attempt, range(8)))

    assert results.count(True) == 1
    assert len(read_lines(db_path)) == 1


# ----------------------------------------------------------------------------
# Test authenticate() / login()
# ----------------------------------------------------------------------------

def test_authenticate(store):
    store.create("alice", "pw1")

    assert store.authenticate("alice", "pw1")
    assert not store.authenticate("alice", "pw1x")
    assert not store.authenticate("nobody", "pw1")


def test_authenticate_uses_case_insensitive_lookup(store):
    store.create("Alice", "pw1")

    assert store.authenticate("alice", "pw1")


def test_login_returns_stored_user(store):
    store.create("Alice", "pw1")

    user = store.login("alice", "pw1")

    assert user.username == "Alice"


def test_login_wrong_password_raises_auth_error(store):
    store.create("alice", "pw1")

    with pytest.raises(AuthError):
        store.login("alice", "wrong")


# ----------------------------------------------------------------------------
# Test hash()
# ----------------------------------------------------------------------------

def test_hash_is_salted_bcrypt(store):
    first = store.hash("secret")
    second = store.hash("secret")

    assert first.startswith("$2")
    assert first != second
    assert not any(c.isspace() for c in first)


def test_corrupt_stored_hash_fails_authentication(store, db_path):
    with open(db_path, "w", encoding="utf-8") as f:
        f.write("alice 5ebe2294ecd0e0f08eab7690d2a6ee69\n")
    store.load()

    assert store.exists("alice")
    assert not store.authenticate("alice", "secret")


# ----------------------------------------------------------------------------
# Test delete()
# ----------------------------------------------------------------------------

def test_delete_removes_file_and_accounts(store, db_path):
    store.create("alice", "pw1")

    assert store.delete()
    assert not os.path.exists(db_path)
    assert not store.exists("alice")
    assert not store.delete()
