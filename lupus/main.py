from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

# import python-socketio ASGI
import socketio

from .broadcast import SocketIOTransport
from .config import get_settings
from .hub import GameHub
from .logging_config import get_logger, setup_logging
from .rooms import IdentityRegistry, RoomStore

settings = get_settings()
setup_logging(log_level=settings.log_level, log_file=settings.log_file)
logger = get_logger(__name__)

app = FastAPI(title="Lupus in Tabula")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------- Socket.IO server -----------------
# Async Socket.IO server mounted on the FastAPI app via ASGI
sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.cors_origins,
    ping_interval=settings.ping_interval,
    ping_timeout=settings.ping_timeout,
    logger=logger if settings.log_level.upper() == "DEBUG" else False,
)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)

# one process owns every room; fresh stores are built per test instead
store = RoomStore(code_length=settings.room_code_length)
registry = IdentityRegistry()
hub = GameHub(store, registry, SocketIOTransport(sio))


def _field(data, key, default=None):
    if isinstance(data, dict):
        return data.get(key, default)
    return default


@app.get("/health", response_class=PlainTextResponse)
async def health():
    return "ok"


@app.get("/rooms/{room_id}")
async def room_details(room_id: str):
    """Public lobby view of a room: roster, host presence and phase flags. No roles."""
    state = hub.snapshot(room_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return state.to_wire()


@sio.event
async def connect(sid, environ, auth=None):
    logger.debug(f"Socket connect: {sid} from {environ.get('REMOTE_ADDR')}")


@sio.event
async def disconnect(sid, reason=None):
    logger.debug(f"Socket disconnect: {sid} ({reason})")
    await hub.disconnect(sid)


@sio.on("create_room")
async def handle_create_room(sid, data):
    return await hub.create_room(sid, _field(data, "hostName"))


@sio.on("join_room")
async def handle_join_room(sid, data):
    result = await hub.join_room(sid, _field(data, "roomId"), _field(data, "name"), _field(data, "hostKey"))
    return result.to_wire()


@sio.on("leave_room")
async def handle_leave_room(sid, data=None):
    await hub.leave_room(sid, _field(data, "roomId"))


@sio.on("start_game")
async def handle_start_game(sid, data):
    result = await hub.start_game(sid, _field(data, "roomId"), _field(data, "roleCounts"))
    return result.to_wire()


@sio.on("restart_game")
async def handle_restart_game(sid, data):
    await hub.restart_game(sid, _field(data, "roomId"))


@sio.on("open_voting")
async def handle_open_voting(sid, data):
    await hub.open_voting(sid, _field(data, "roomId"))


@sio.on("close_voting")
async def handle_close_voting(sid, data):
    await hub.close_voting(sid, _field(data, "roomId"))


@sio.on("vote_player")
async def handle_vote_player(sid, data):
    # target null/"" retracts the vote
    await hub.vote_player(sid, _field(data, "roomId"), _field(data, "target"))


@sio.on("unvote_player")
async def handle_unvote_player(sid, data):
    await hub.unvote_player(sid, _field(data, "roomId"))


@sio.on("eliminate_player")
async def handle_eliminate_player(sid, data):
    await hub.eliminate_player(sid, _field(data, "roomId"), _field(data, "name"))


@sio.on("revive_player")
@sio.on("resurrect_player")
@sio.on("uneliminate_player")
async def handle_revive_player(sid, data):
    await hub.revive_player(sid, _field(data, "roomId"), _field(data, "name"))


@sio.on("kick_player")
async def handle_kick_player(sid, data):
    await hub.kick_player(sid, _field(data, "roomId"), _field(data, "name"))


@sio.on("couple_sleep_at")
async def handle_couple_sleep_at(sid, data):
    await hub.couple_sleep_at(sid, _field(data, "roomId"), _field(data, "where"))


@sio.on("host_room_info")
async def handle_host_room_info(sid, data):
    await hub.host_room_info(sid, _field(data, "roomId"))


@sio.on("heartbeat")
async def handle_heartbeat(sid, data=None):
    return await hub.heartbeat(sid)


# expose the ASGI app at the module level so uvicorn can import it
asgi_app = socket_app


def run():
    import uvicorn

    logger.info(f"Starting game server on {settings.host}:{settings.port}")
    uvicorn.run("lupus.main:asgi_app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
