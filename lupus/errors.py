from enum import Enum


class ErrorCode(str, Enum):
    ROOM_NOT_FOUND = "RoomNotFound"
    UNAUTHORIZED = "Unauthorized"
    NAME_REQUIRED = "NameRequired"
    NAME_TAKEN = "NameTaken"
    INVALID_HOST_SECRET = "InvalidHostSecret"
    HOST_ALREADY_ONLINE = "HostAlreadyOnline"
    GAME_ALREADY_STARTED = "GameAlreadyStarted"
    INSUFFICIENT_ROLES = "InsufficientRoles"
    INVALID_ROLE_COUNTS = "InvalidRoleCounts"


class GameError(Exception):
    """A rejected request. Raised before any room state is touched."""

    code: ErrorCode = ErrorCode.UNAUTHORIZED
    default_message = "Request rejected"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class RoomNotFound(GameError):
    code = ErrorCode.ROOM_NOT_FOUND
    default_message = "Room not found"


class Unauthorized(GameError):
    code = ErrorCode.UNAUTHORIZED
    default_message = "Only the host can do that"


class NameRequired(GameError):
    code = ErrorCode.NAME_REQUIRED
    default_message = "A name is required"


class NameTaken(GameError):
    code = ErrorCode.NAME_TAKEN
    default_message = "Name already in use in this room"


class InvalidHostSecret(GameError):
    code = ErrorCode.INVALID_HOST_SECRET
    default_message = "The correct host key is required to rejoin as host"


class HostAlreadyOnline(GameError):
    code = ErrorCode.HOST_ALREADY_ONLINE
    default_message = "The host is already online in this room"


class GameAlreadyStarted(GameError):
    code = ErrorCode.GAME_ALREADY_STARTED
    default_message = "Game already started. You cannot join now."


class InsufficientRoles(GameError):
    code = ErrorCode.INSUFFICIENT_ROLES

    def __init__(self, deck_size: int, candidates: int):
        self.deck_size = deck_size
        self.candidates = candidates
        super().__init__(
            f"Not enough roles for the players present. Roles {deck_size}, players {candidates}."
        )


class InvalidRoleCounts(GameError):
    code = ErrorCode.INVALID_ROLE_COUNTS
    default_message = "Role counts must be non-negative integers"
