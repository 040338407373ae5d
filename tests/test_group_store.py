import pytest

from ninja_chat.group_store import EVERYBODY, EVERYBODY_HASH, GroupStore


# ----------------------------------------------------------------------------
# Setup
# ----------------------------------------------------------------------------

@pytest.fixture
def group_store():
    return GroupStore()


# ----------------------------------------------------------------------------
# Test group()
# ----------------------------------------------------------------------------

def test_everybody_group_always_exists(group_store):
    group = group_store.get_group(EVERYBODY_HASH)

    assert group is not None
    assert group.name == EVERYBODY
    assert group.has_member("anyone")


def test_group_creates_new_group(group_store):
    group = group_store.group("abc", "CS342", ["alice", "bob"])

    assert group.name == "CS342"
    assert group.users == ["alice", "bob"]
    assert group_store.get_group("abc") is group


def test_group_returns_existing_and_merges_members(group_store):
    first = group_store.group("abc", "CS342", ["alice", "bob"])
    second = group_store.group("abc", "Renamed", ["bob", "carol"])

    assert second is first
    assert second.name == "CS342"
    assert second.users == ["alice", "bob", "carol"]


def test_add_message_keeps_history_in_order(group_store):
    group = group_store.group("abc", "CS342", ["alice", "bob"])
    group.add_message("alice", "12:00", "first")
    group.add_message("bob", "12:01", "second")

    assert group.to_dict()["messages"] == [
        {"from": "alice", "timestamp": "12:00", "message": "first"},
        {"from": "bob", "timestamp": "12:01", "message": "second"},
    ]


# ----------------------------------------------------------------------------
# Test get_groups()
# ----------------------------------------------------------------------------

def test_get_groups_only_lists_member_groups(group_store):
    group_store.group("abc", "CS342", ["alice", "bob"])
    group_store.group("def", "Book Club", ["carol"])

    names = [g["name"] for g in group_store.get_groups("alice")]

    assert names == [EVERYBODY, "CS342"]


def test_get_groups_descriptor_shape(group_store):
    descriptor = group_store.get_groups("nobody")[0]

    assert descriptor == {
        "name": EVERYBODY,
        "hash": EVERYBODY_HASH,
        "users": [EVERYBODY],
        "messages": [],
    }
