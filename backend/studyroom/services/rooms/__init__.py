"""Room domain services: storage, the room state machine and scoring.

HTTP routes import ``RoomService`` from here, keeping transport concerns
separated from the room rules.
"""

from .state_machine import RoomService, normalize_code
from .types import LeaderboardEntry, Player, Question, Room, RoomStatus

__all__ = [
    'LeaderboardEntry',
    'Player',
    'Question',
    'Room',
    'RoomService',
    'RoomStatus',
    'normalize_code',
]
