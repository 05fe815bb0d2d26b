from lupus import rooms
from lupus.rooms import ROOM_CODE_ALPHABET, IdentityRegistry, RoomStore, normalize_room_code


def test_codes_use_the_alphabet():
    store = RoomStore(code_length=5)
    codes = {store.create(f"host{i}").id for i in range(50)}

    assert len(codes) == 50
    for code in codes:
        assert len(code) == 5
        assert set(code) <= set(ROOM_CODE_ALPHABET)


def test_lookup_ignores_case_and_whitespace():
    store = RoomStore()
    room = store.create("Alice", "sid-host")

    assert store.get(f" {room.id.lower()} ") is room
    assert room.id.lower() in store
    assert store.get(None) is None
    assert normalize_room_code(" ab12 ") == "AB12"


def test_host_secret_is_unguessable():
    store = RoomStore()
    first, second = store.create("Alice"), store.create("Alice")
    assert len(first.host_secret) == 32
    assert first.host_secret != second.host_secret


def test_collision_draws_a_new_code(monkeypatch):
    codes = iter(["AAAA", "AAAA", "BBBB"])
    monkeypatch.setattr(rooms, "generate_room_code", lambda length: next(codes))
    store = RoomStore()

    assert store.create("Alice").id == "AAAA"
    assert store.create("Bob").id == "BBBB"
    assert len(store) == 2
    assert store.get("bbbb").host_name == "Bob"


def test_registry_round_trip():
    registry = IdentityRegistry()
    registry.register("sid-1", "ABCD", "Bob", False)

    entry = registry.resolve("sid-1")
    assert entry.room_id == "ABCD"
    assert entry.player_name == "Bob"
    assert not entry.is_host
    assert "sid-1" in registry

    assert registry.unregister("sid-1") == entry
    assert registry.resolve("sid-1") is None
    assert registry.unregister("sid-1") is None
    assert len(registry) == 0


def test_registry_rebind_replaces_entry():
    registry = IdentityRegistry()
    registry.register("sid-1", "ABCD", None, True)
    registry.register("sid-1", "WXYZ", "Bob", False)

    assert registry.resolve("sid-1").room_id == "WXYZ"
    assert len(registry) == 1
    assert registry.resolve("") is None


def test_non_text_room_codes_match_nothing():
    store = RoomStore()
    store.create("Alice")

    assert normalize_room_code(1234) == ""
    assert store.get(["ABCD"]) is None
    assert 1234 not in store
