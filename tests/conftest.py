import random
from collections import defaultdict

import pytest

from lupus.broadcast import Transport
from lupus.hub import GameHub
from lupus.rooms import IdentityRegistry, RoomStore

HOST_SID = "sid-host"


def sid_for(name):
    return f"sid-{name.lower()}"


class RecordingTransport(Transport):
    """In-memory transport: remembers group membership and every delivery."""

    def __init__(self):
        self.groups = defaultdict(set)
        self.inbox = defaultdict(list)
        self.group_log = defaultdict(list)
        self.broken = set()

    async def send_to_group(self, group, event, payload=None):
        self.group_log[group].append((event, payload))
        for connection in sorted(self.groups[group]):
            self.inbox[connection].append((event, payload))

    async def send_to_connection(self, connection, event, payload=None):
        if connection in self.broken:
            raise ConnectionError(f"{connection} is gone")
        self.inbox[connection].append((event, payload))

    async def add_to_group(self, connection, group):
        self.groups[group].add(connection)

    async def remove_from_group(self, connection, group):
        self.groups[group].discard(connection)

    def received(self, connection, event):
        return [payload for name, payload in self.inbox[connection] if name == event]

    def broadcast(self, group, event):
        return [payload for name, payload in self.group_log[group] if name == event]

    def last(self, connection, event):
        payloads = self.received(connection, event)
        return payloads[-1] if payloads else None

    def reset(self):
        self.inbox.clear()
        self.group_log.clear()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def store():
    return RoomStore()


@pytest.fixture
def registry():
    return IdentityRegistry()


@pytest.fixture
def hub(store, registry, transport):
    return GameHub(store, registry, transport, rng=random.Random(1234))


@pytest.fixture
def lobby(hub):
    """Factory: a room hosted from HOST_SID with players joined from sid_for(name)."""

    async def make(host="Alice", players=("Bob", "Carol")):
        room_id = await hub.create_room(HOST_SID, host)
        for name in players:
            result = await hub.join_room(sid_for(name), room_id, name)
            assert result.ok, result.error
        return room_id

    return make
