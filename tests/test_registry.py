import threading

from chatroom.registry import ChatPeer, ClientRegistry
from tests.helpers import FakeSession


def test_distinct_names_all_registered():
    registry = ClientRegistry()
    names = ["carol", "alice", "bob", "Alice"]
    for name in names:
        assert registry.insert_if_absent(name, FakeSession(name))
    assert registry.usernames() == set(names)
    assert len(registry) == 4


def test_duplicate_name_rejected_and_original_kept():
    registry = ClientRegistry()
    first = FakeSession("alice")
    registry.insert_if_absent("alice", first)

    assert not registry.insert_if_absent("alice", FakeSession("alice"))
    assert registry.lookup("alice") is first
    assert len(registry) == 1


def test_remove_only_drops_the_owning_session():
    registry = ClientRegistry()
    owner = FakeSession("alice")
    impostor = FakeSession("alice")
    registry.add("alice", owner)

    assert not registry.remove(impostor)
    assert "alice" in registry
    assert registry.remove(owner)
    assert "alice" not in registry
    assert not registry.remove(owner)


def test_remove_unauthenticated_session_is_noop():
    registry = ClientRegistry()
    registry.add("bob", FakeSession("bob"))
    assert not registry.remove(FakeSession(None))
    assert registry.usernames() == {"bob"}


def test_lookup_missing_returns_none():
    assert ClientRegistry().lookup("nobody") is None


def test_list_other_usernames_excludes_requester():
    registry = ClientRegistry()
    for name in ("alice", "bob", "carol"):
        registry.add(name, FakeSession(name))
    assert registry.list_other_usernames("alice") == {"bob", "carol"}
    assert registry.list_other_usernames("zed") == {"alice", "bob", "carol"}


def test_snapshots_are_copies():
    registry = ClientRegistry()
    registry.add("alice", FakeSession("alice"))
    sessions = registry.sessions()
    registry.add("bob", FakeSession("bob"))
    assert len(sessions) == 1


def test_concurrent_inserts_of_same_name_have_one_winner():
    registry = ClientRegistry()
    start = threading.Barrier(8)
    wins = []

    def attempt(i):
        session = FakeSession("alice")
        start.wait()
        if registry.insert_if_absent("alice", session):
            wins.append(i)

    threads = [threading.Thread(target=attempt, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(wins) == 1
    assert len(registry) == 1


def test_fake_session_satisfies_chat_peer():
    registry = ClientRegistry()
    session = FakeSession("alice")
    registry.add("alice", session)

    assert isinstance(session, ChatPeer)
    assert all(isinstance(s, ChatPeer) for s in registry.sessions())
