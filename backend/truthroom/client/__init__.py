"""Participant-side session client for truthroom rooms."""
from .config import ClientConfig
from .identity import FileIdentityCache, MemoryIdentityCache
from .session import RoomSession, Route
from .state import INITIAL_STATE, NO_ROOM, RoomView, reduce
from .store import HttpRoomStore
from .transport import NotifierTransport, PollingTransport, SocketIOTransport


def build_session(config=None) -> RoomSession:
    """Session wired from ``TRUTHROOM_*`` environment variables unless a config is given."""
    return RoomSession.from_config(config if config is not None else ClientConfig.from_env())


__all__ = [
    'ClientConfig',
    'FileIdentityCache',
    'HttpRoomStore',
    'INITIAL_STATE',
    'MemoryIdentityCache',
    'NO_ROOM',
    'NotifierTransport',
    'PollingTransport',
    'RoomSession',
    'RoomView',
    'Route',
    'SocketIOTransport',
    'build_session',
    'reduce',
]
