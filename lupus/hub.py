"""RPC surface of the game server.

Every public coroutine takes the caller's connection id first. Operations on
one room are serialised with that room's lock; state is fully mutated before
anything is pushed to clients.
"""

import hmac
import random
from typing import Any, Mapping, Optional

from .broadcast import Broadcaster, Transport, player_views
from .errors import (
    GameAlreadyStarted,
    GameError,
    HostAlreadyOnline,
    InvalidHostSecret,
    NameRequired,
    NameTaken,
    RoomNotFound,
    Unauthorized,
)
from .game_logic import Room, normalize_name, same_name
from .logging_config import get_logger
from .rooms import ConnectionEntry, IdentityRegistry, RoomStore, normalize_room_code
from .schemas import ActionResult, JoinResult, LobbyState

logger = get_logger(__name__)


class GameHub:
    def __init__(
        self,
        store: RoomStore,
        registry: IdentityRegistry,
        transport: Transport,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.registry = registry
        self.transport = transport
        self.broadcaster = Broadcaster(transport, registry)
        self.rng = rng

    # =============== helpers ===============

    def _is_host(self, room: Room, connection: str) -> bool:
        return bool(room.host_connection) and room.host_connection == connection

    def _room(self, connection: str, room_id: Optional[str]) -> Optional[Room]:
        room = self.store.get(room_id)
        if room is None:
            logger.debug(f"Command for unknown room {room_id!r} from {connection}")
        return room

    def _secret_matches(self, room: Room, host_secret: Optional[str]) -> bool:
        supplied = normalize_name(host_secret).lower()
        if not supplied:
            return False
        return hmac.compare_digest(supplied.encode("utf-8"), room.host_secret.lower().encode("utf-8"))

    async def _join_group(self, connection: str, room_id: str):
        try:
            await self.transport.add_to_group(connection, room_id)
        except Exception as e:
            logger.warning(f"Could not add {connection} to group {room_id}: {e}")

    async def _leave_group(self, connection: str, room_id: str):
        try:
            await self.transport.remove_from_group(connection, room_id)
        except Exception as e:
            logger.warning(f"Could not remove {connection} from group {room_id}: {e}")

    async def _send_error(self, connection: str, exc: GameError):
        await self.broadcaster.to_connection(connection, "join_error", {
            "message": exc.message,
            "code": exc.code.value,
        })

    def _projection(self, room: Room) -> dict:
        return dict(
            room_id=room.id,
            host_name=room.host_name,
            game_started=room.game_started,
            voting_open=room.voting_open,
            players=player_views(room),
            role_counts=dict(room.role_counts) if room.game_started and room.role_counts else None,
        )

    def _clear_identity(self, room: Room, entry: ConnectionEntry, connection: str):
        """Take `connection` off whatever identity `entry` says it held in `room`."""
        if entry.is_host:
            if room.host_connection == connection:
                room.host_connection = None
            return
        player = room.find_player(entry.player_name)
        if player is not None and player.connection == connection:
            player.go_offline()

    async def _release_stale(self, connection: str, entry: ConnectionEntry):
        """Drop an identity the connection held in another room before rebinding."""
        room = self.store.get(entry.room_id)
        if room is None:
            return
        async with room.lock:
            self._clear_identity(room, entry, connection)
            await self._leave_group(connection, room.id)
            await self.broadcaster.lobby_and_votes(room)

    async def _detach(self, connection: str, room_id: Optional[str] = None) -> bool:
        """Shared path of an explicit leave and a dropped connection."""
        entry = self.registry.resolve(connection)
        if entry is None:
            return False
        if room_id is not None and normalize_room_code(room_id) != entry.room_id:
            return False
        room = self.store.get(entry.room_id)
        if room is None:
            self.registry.unregister(connection)
            return False
        async with room.lock:
            if self.registry.resolve(connection) != entry:
                # rebound while we waited for the lock
                return False
            self.registry.unregister(connection)
            self._clear_identity(room, entry, connection)
            await self._leave_group(connection, room.id)
            who = "host" if entry.is_host else repr(entry.player_name)
            logger.info(f"{who} went offline in room {room.id}")
            await self.broadcaster.lobby_and_votes(room)
        return True

    # =============== lifecycle & connections ===============

    async def create_room(self, connection: str, host_name: Optional[str]) -> Optional[str]:
        name = normalize_name(host_name)
        if not name:
            await self._send_error(connection, NameRequired())
            return None
        previous = self.registry.resolve(connection)
        if previous is not None:
            await self._detach(connection)

        room = self.store.create(name, connection)
        async with room.lock:
            self.registry.register(connection, room.id, None, True)
            await self._join_group(connection, room.id)
            # the key goes to the creator only, never to the group
            await self.broadcaster.to_connection(connection, "host_key", {"hostKey": room.host_secret})
            await self.broadcaster.lobby_and_votes(room)
        return room.id

    async def join_room(
        self,
        connection: str,
        room_id: Optional[str],
        name: Optional[str],
        host_secret: Optional[str] = None,
    ) -> JoinResult:
        room = self.store.get(room_id)
        if room is None:
            exc = RoomNotFound()
            await self._send_error(connection, exc)
            return JoinResult.failure(exc, room_id=normalize_room_code(room_id))

        previous = self.registry.resolve(connection)
        async with room.lock:
            try:
                trimmed = normalize_name(name)
                if not trimmed:
                    raise NameRequired()
                if room.is_host_name(trimmed):
                    result = await self._bind_host(connection, room, host_secret)
                else:
                    result = await self._bind_player(connection, room, trimmed)
            except GameError as exc:
                logger.info(f"Join of room {room.id} as {name!r} rejected: {exc.code.value}")
                await self._send_error(connection, exc)
                return JoinResult.failure(exc, **self._projection(room))

            current = self.registry.resolve(connection)
            if previous is not None and previous != current and previous.room_id == room.id:
                self._clear_identity(room, previous, connection)

            await self.broadcaster.lobby_and_votes(room)
            await self.broadcaster.voting_phase(room, connection)

        if previous is not None and previous.room_id != room.id:
            await self._release_stale(connection, previous)
        return result

    async def _bind_host(self, connection: str, room: Room, host_secret: Optional[str]) -> JoinResult:
        host_online = self.broadcaster.host_online(room)
        if host_online and room.host_connection != connection:
            raise HostAlreadyOnline()
        if not host_online and not self._secret_matches(room, host_secret):
            raise InvalidHostSecret()

        room.host_connection = connection
        self.registry.register(connection, room.id, None, True)
        await self._join_group(connection, room.id)
        logger.info(f"Host {room.host_name!r} bound to room {room.id}")
        return JoinResult(is_host=True, role=None, **self._projection(room))

    async def _bind_player(self, connection: str, room: Room, name: str) -> JoinResult:
        player = room.find_player(name)
        if player is not None and player.online and player.connection != connection:
            raise NameTaken()

        if player is None:
            if room.game_started:
                raise GameAlreadyStarted()
            player = room.add_player(name, connection)
            logger.info(f"{player.name!r} joined room {room.id}")
        else:
            player.go_online(connection)
            logger.info(f"{player.name!r} reconnected to room {room.id}")
            if player.role:
                await self.broadcaster.to_connection(connection, "receive_role", {"role": player.role})

        self.registry.register(connection, room.id, player.name, False)
        await self._join_group(connection, room.id)
        return JoinResult(is_host=False, role=player.role or None, **self._projection(room))

    async def leave_room(self, connection: str, room_id: Optional[str] = None) -> bool:
        return await self._detach(connection, room_id)

    async def disconnect(self, connection: str) -> bool:
        return await self._detach(connection)

    # =============== game flow ===============

    async def start_game(
        self, connection: str, room_id: Optional[str], role_counts: Optional[Mapping[str, Any]]
    ) -> ActionResult:
        room = self._room(connection, room_id)
        if room is None:
            return ActionResult.failure(RoomNotFound())
        async with room.lock:
            if not self._is_host(room, connection):
                logger.debug(f"Ignoring start_game from non-host {connection} in room {room.id}")
                return ActionResult.failure(Unauthorized())
            try:
                dealt = room.start_game(role_counts, self.rng)
            except GameError as exc:
                logger.info(f"start_game in room {room.id} rejected: {exc.message}")
                await self._send_error(connection, exc)
                return ActionResult.failure(exc)

            logger.info(f"Room {room.id} started: {len(dealt.candidates)} roles dealt, {len(dealt.pairs)} couple(s)")
            for player in room.players:
                if player.online and player.connection:
                    await self.broadcaster.to_connection(player.connection, "receive_role", {"role": player.role})
            for romeo, giulietta in dealt.pairs:
                await self.broadcaster.to_connection(
                    romeo.connection, "couple_paired", {"partner": giulietta.name, "partnerRole": giulietta.role}
                )
                await self.broadcaster.to_connection(
                    giulietta.connection, "couple_paired", {"partner": romeo.name, "partnerRole": romeo.role}
                )

            await self.broadcaster.to_room(room, "game_started", {
                "players": self.broadcaster.players_payload(room),
                "hostName": room.host_name,
                "hostOnline": self.broadcaster.host_online(room),
                "roleCounts": dict(room.role_counts),
            })
            await self.broadcaster.update_votes(room)
            await self.broadcaster.update_lobby(room)
        return ActionResult()

    async def restart_game(self, connection: str, room_id: Optional[str]):
        room = self._room(connection, room_id)
        if room is None:
            return
        async with room.lock:
            if not self._is_host(room, connection):
                return
            room.restart()
            logger.info(f"Room {room.id} restarted")
            await self.broadcaster.to_room(room, "game_restarted", {
                "players": self.broadcaster.lobby_payload(room),
                "hostName": room.host_name,
            })
            await self.broadcaster.lobby_and_votes(room)

    async def open_voting(self, connection: str, room_id: Optional[str]):
        room = self._room(connection, room_id)
        if room is None:
            return
        async with room.lock:
            if not self._is_host(room, connection) or not room.open_voting():
                return
            await self.broadcaster.to_room(room, "voting_started")
            await self.broadcaster.update_votes(room)

    async def close_voting(self, connection: str, room_id: Optional[str]):
        room = self._room(connection, room_id)
        if room is None:
            return
        async with room.lock:
            if not self._is_host(room, connection):
                return
            room.close_voting()
            await self.broadcaster.to_room(room, "voting_ended")
            await self.broadcaster.update_votes(room)

    async def vote_player(self, connection: str, room_id: Optional[str], target: Optional[str]):
        room = self.store.get(room_id)
        if room is None:
            return
        async with room.lock:
            voter = room.find_player_by_connection(connection)
            if room.cast_vote(voter, target):
                await self.broadcaster.update_votes(room)

    async def unvote_player(self, connection: str, room_id: Optional[str]):
        room = self.store.get(room_id)
        if room is None:
            return
        async with room.lock:
            voter = room.find_player_by_connection(connection)
            if room.retract_vote(voter):
                await self.broadcaster.update_votes(room)

    async def couple_sleep_at(self, connection: str, room_id: Optional[str], where: Optional[str]):
        room = self.store.get(room_id)
        if room is None:
            return
        async with room.lock:
            me = room.find_player_by_connection(connection)
            side = room.set_couple_sleep(me, where)
            if side is not None:
                await self.broadcaster.to_room(room, "couple_sleep_set", {"where": side})

    async def eliminate_player(self, connection: str, room_id: Optional[str], name: Optional[str]):
        room = self._room(connection, room_id)
        if room is None:
            return
        async with room.lock:
            if not self._is_host(room, connection):
                return
            outcome = room.eliminate(name)

            if outcome.vetoed:
                logger.info(f"Elimination of {outcome.target.name!r} in room {room.id} vetoed by shelter")
                await self.broadcaster.to_room(room, "couple_saved", {
                    "name": outcome.target.name,
                    "shelteredBy": outcome.sheltered_by,
                })
                await self.broadcaster.update_votes(room)
                return

            for dead in outcome.eliminated:
                logger.info(f"{dead.name!r} eliminated in room {room.id}")
                await self.broadcaster.update_votes(room)
                await self.broadcaster.to_room(room, "player_eliminated", {"name": dead.name})
                await self._reveal(room, dead)

            if outcome.couple_died:
                await self.broadcaster.to_room(room, "couple_died", {
                    "romeo": room.couple.romeo,
                    "giulietta": room.couple.giulietta,
                })

    async def _reveal(self, room: Room, dead):
        role = room.revealed_role(dead)
        for medium in room.reveal_recipients():
            await self.broadcaster.to_connection(medium.connection, "medium_reveal", {"name": dead.name, "role": role})

    async def revive_player(self, connection: str, room_id: Optional[str], name: Optional[str]):
        room = self._room(connection, room_id)
        if room is None:
            return
        async with room.lock:
            if not self._is_host(room, connection):
                return
            player = room.revive(name)
            if player is None:
                return
            await self.broadcaster.update_votes(room)
            await self.broadcaster.to_room(room, "player_revived", {"name": player.name})

    async def kick_player(self, connection: str, room_id: Optional[str], name: Optional[str]):
        room = self._room(connection, room_id)
        if room is None:
            return
        async with room.lock:
            if not self._is_host(room, connection) or room.game_started:
                return
            if room.is_host_name(name):
                return
            player = room.find_player(name)
            if player is None:
                return

            kicked = player.connection
            room.remove_player(player)
            logger.info(f"{player.name!r} kicked from room {room.id}")
            if kicked:
                await self.broadcaster.to_connection(kicked, "kicked", {"roomId": room.id, "hostName": room.host_name})
                await self._leave_group(kicked, room.id)
                entry = self.registry.resolve(kicked)
                if entry is not None and entry.room_id == room.id and same_name(entry.player_name, player.name):
                    self.registry.unregister(kicked)

            await self.broadcaster.to_room(room, "player_kicked", {"name": player.name})
            await self.broadcaster.lobby_and_votes(room)

    async def host_room_info(self, connection: str, room_id: Optional[str]):
        room = self._room(connection, room_id)
        if room is None:
            return
        async with room.lock:
            if not self._is_host(room, connection):
                return
            await self.broadcaster.to_connection(connection, "host_room_info", {
                "roomId": room.id,
                "players": [{"name": p.name, "online": p.online} for p in room.players],
            })

    async def heartbeat(self, connection: str):
        return None

    def snapshot(self, room_id: Optional[str]) -> Optional[LobbyState]:
        room = self.store.get(room_id)
        if room is None:
            return None
        return self.broadcaster.lobby_state(room)
