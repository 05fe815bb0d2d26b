"""Room and session engine for a Lupus in Tabula (werewolf) party game server."""

__version__ = "0.1.0"
