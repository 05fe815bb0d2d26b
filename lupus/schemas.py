from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import ErrorCode, GameError


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class LobbyPlayer(WireModel):
    name: str
    online: bool


class PlayerView(WireModel):
    name: str
    online: bool
    role: str = ""
    votes: int = 0
    eliminated: bool = False
    current_vote: Optional[str] = None
    voted_by: List[str] = Field(default_factory=list)


class LobbyState(WireModel):
    room_id: str
    host_name: str
    host_online: bool
    game_started: bool
    voting_open: bool
    players: List[LobbyPlayer] = Field(default_factory=list)


class ActionResult(WireModel):
    """Outcome of an RPC. Success and failure share this one shape."""

    ok: bool = True
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @classmethod
    def failure(cls, exc: GameError, **fields) -> "ActionResult":
        return cls(ok=False, error=exc.message, error_code=exc.code, **fields)


class JoinResult(ActionResult):
    room_id: str = ""
    host_name: str = ""
    is_host: bool = False
    game_started: bool = False
    voting_open: bool = False
    role: Optional[str] = None
    players: List[PlayerView] = Field(default_factory=list)
    role_counts: Optional[Dict[str, int]] = None
