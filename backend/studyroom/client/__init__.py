"""Consumer-side helpers: an HTTP client for the room endpoints and a poller
that turns repeated full-room reads into change events."""

from .api_client import RoomApiClient
from .poller import RoomPoller, RoomUpdate, is_game_over

__all__ = ['RoomApiClient', 'RoomPoller', 'RoomUpdate', 'is_game_over']
