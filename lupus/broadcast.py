from typing import Any, List, Optional

from .game_logic import Room
from .logging_config import get_logger
from .rooms import IdentityRegistry
from .schemas import LobbyPlayer, LobbyState, PlayerView

logger = get_logger(__name__)


class Transport:
    """What the game needs from the messaging layer.

    Groups are named by room code; connections by an opaque id.
    """

    async def send_to_group(self, group: str, event: str, payload: Any = None):
        raise NotImplementedError

    async def send_to_connection(self, connection: str, event: str, payload: Any = None):
        raise NotImplementedError

    async def add_to_group(self, connection: str, group: str):
        raise NotImplementedError

    async def remove_from_group(self, connection: str, group: str):
        raise NotImplementedError


class SocketIOTransport(Transport):
    def __init__(self, sio):
        self.sio = sio

    async def send_to_group(self, group, event, payload=None):
        await self.sio.emit(event, payload, room=group)

    async def send_to_connection(self, connection, event, payload=None):
        await self.sio.emit(event, payload, room=connection)

    async def add_to_group(self, connection, group):
        await self.sio.enter_room(connection, group)

    async def remove_from_group(self, connection, group):
        await self.sio.leave_room(connection, group)


def lobby_players(room: Room) -> List[LobbyPlayer]:
    ordered = sorted(room.players, key=lambda p: p.name.casefold())
    return [LobbyPlayer(name=p.name, online=p.online) for p in ordered]


def player_views(room: Room) -> List[PlayerView]:
    tallies = room.tally()
    views = []
    for p in room.players:
        tally = tallies.get(p.name.casefold())
        views.append(PlayerView(
            name=p.name,
            online=p.online,
            role=p.role or "",
            votes=tally.votes if tally else 0,
            eliminated=p.eliminated,
            current_vote=p.current_vote,
            voted_by=list(tally.voted_by) if tally else [],
        ))
    return views


class Broadcaster:
    """Pushes the externally visible projection of a room after a mutation.

    Every send is best-effort: a failed delivery is logged and never reaches
    the operation that triggered it.
    """

    def __init__(self, transport: Transport, registry: IdentityRegistry):
        self.transport = transport
        self.registry = registry

    def host_online(self, room: Room) -> bool:
        return bool(room.host_connection) and room.host_connection in self.registry

    def lobby_state(self, room: Room) -> LobbyState:
        return LobbyState(
            room_id=room.id,
            host_name=room.host_name,
            host_online=self.host_online(room),
            game_started=room.game_started,
            voting_open=room.voting_open,
            players=lobby_players(room),
        )

    def players_payload(self, room: Room) -> List[dict]:
        return [view.to_wire() for view in player_views(room)]

    def lobby_payload(self, room: Room) -> List[dict]:
        return [p.to_wire() for p in lobby_players(room)]

    async def to_room(self, room: Room, event: str, payload: Any = None):
        try:
            await self.transport.send_to_group(room.id, event, payload)
        except Exception as e:
            logger.warning(f"Broadcast of {event} to room {room.id} failed: {e}")

    async def to_connection(self, connection: Optional[str], event: str, payload: Any = None):
        if not connection:
            return
        try:
            await self.transport.send_to_connection(connection, event, payload)
        except Exception as e:
            logger.warning(f"Sending {event} to connection {connection} failed: {e}")

    async def update_lobby(self, room: Room):
        await self.to_room(room, "update_lobby", {
            "players": self.lobby_payload(room),
            "hostName": room.host_name,
            "hostOnline": self.host_online(room),
        })

    async def update_votes(self, room: Room):
        await self.to_room(room, "update_votes", {"players": self.players_payload(room)})

    async def lobby_and_votes(self, room: Room):
        await self.update_lobby(room)
        await self.update_votes(room)

    async def voting_phase(self, room: Room, connection: str):
        """Tell one connection which voting phase the room is in."""
        await self.to_connection(connection, "voting_started" if room.voting_open else "voting_ended")
