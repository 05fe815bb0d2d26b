import secrets
import uuid
from typing import Dict, NamedTuple, Optional

from .game_logic import Room
from .logging_config import get_logger

logger = get_logger(__name__)

# no O/0/I/1/L so codes survive being read out loud
ROOM_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
DEFAULT_CODE_LENGTH = 4


def generate_room_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def normalize_room_code(code: Optional[str]) -> str:
    return code.strip().upper() if isinstance(code, str) else ""


class ConnectionEntry(NamedTuple):
    room_id: str
    player_name: Optional[str]
    is_host: bool


class IdentityRegistry:
    """Reverse index: live connection -> the identity it currently speaks for.

    Holds room codes and names only, never Player objects.
    """

    def __init__(self):
        self._entries: Dict[str, ConnectionEntry] = {}

    def register(self, connection: str, room_id: str, player_name: Optional[str], is_host: bool) -> ConnectionEntry:
        entry = ConnectionEntry(room_id, player_name, is_host)
        self._entries[connection] = entry
        return entry

    def resolve(self, connection: Optional[str]) -> Optional[ConnectionEntry]:
        if not connection:
            return None
        return self._entries.get(connection)

    def unregister(self, connection: str) -> Optional[ConnectionEntry]:
        return self._entries.pop(connection, None)

    def __contains__(self, connection: str) -> bool:
        return connection in self._entries

    def __len__(self):
        return len(self._entries)


class RoomStore:
    """All active rooms keyed by room code.

    Creation and lookup never await, so on a single event loop they cannot
    interleave with each other.
    """

    def __init__(self, code_length: int = DEFAULT_CODE_LENGTH):
        self.code_length = code_length
        self._rooms: Dict[str, Room] = {}

    def create(self, host_name: str, host_connection: Optional[str] = None) -> Room:
        room_id = generate_room_code(self.code_length)
        while room_id in self._rooms:
            room_id = generate_room_code(self.code_length)
        room = Room(room_id, host_name, uuid.uuid4().hex, host_connection)
        self._rooms[room_id] = room
        logger.info(f"Room {room_id} created for host {room.host_name!r} ({len(self._rooms)} active)")
        return room

    def get(self, room_id: Optional[str]) -> Optional[Room]:
        return self._rooms.get(normalize_room_code(room_id))

    def __contains__(self, room_id: str) -> bool:
        return normalize_room_code(room_id) in self._rooms

    def __len__(self):
        return len(self._rooms)
