"""Client-side polling of a room.

Every poll reads the full room and compares it with the last room seen;
there are no deltas. Failed polls keep serving the cached room. A room only
counts as gone after ``missing_threshold`` not-found polls in a row.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from studyroom.errors import NotFoundError, RoomError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SEC = 2.0


def is_game_over(room: Dict[str, Any]) -> bool:
    """Finished explicitly, or advanced past the last question."""
    if room.get('status') == 'finished':
        return True
    return room.get('status') == 'playing' and room.get('currentQuestionIndex', 0) >= len(room.get('questions', []))


def _question_key(room: Optional[Dict[str, Any]]):
    if room is None or room.get('status') != 'playing' or is_game_over(room):
        return None
    return room.get('currentQuestionIndex')


def _player_names(room: Optional[Dict[str, Any]]):
    if room is None:
        return None
    return [p['name'] for p in room.get('players', [])]


@dataclass
class RoomUpdate:
    """Result of one poll. The boolean fields are edges since the previous poll."""

    room: Optional[Dict[str, Any]]
    question_changed: bool = False
    leaderboard_revealed: bool = False
    game_ended: bool = False
    players_changed: bool = False
    room_gone: bool = False
    stale: bool = False
    error: Optional[RoomError] = None


class RoomPoller:

    def __init__(self, fetch: Callable[[str], Dict[str, Any]], code: str, *, missing_threshold: int = 2):
        self._fetch = fetch
        self.code = code
        self.missing_threshold = max(1, missing_threshold)
        self._room: Optional[Dict[str, Any]] = None
        self._missing = 0
        self.failures = 0
        self.gone = False

    @property
    def room(self) -> Optional[Dict[str, Any]]:
        return self._room

    def poll(self) -> RoomUpdate:
        try:
            latest = self._fetch(self.code)
        except NotFoundError as exc:
            self._missing += 1
            self.failures += 1
            if self._missing >= self.missing_threshold:
                self.gone = True
            logger.info(f"[poll] room={self.code} not found ({self._missing}/{self.missing_threshold})")
            return RoomUpdate(room=self._room, room_gone=self.gone, stale=True, error=exc)
        except RoomError as exc:
            self.failures += 1
            logger.warning(f"[poll] room={self.code} poll failed, keeping cached state: {exc}")
            return RoomUpdate(room=self._room, stale=True, error=exc)

        previous = self._room
        self._room = latest
        self._missing = 0
        self.gone = False

        key = _question_key(latest)
        same_question = previous is not None and _question_key(previous) == key
        return RoomUpdate(
            room=latest,
            question_changed=key is not None and not same_question,
            leaderboard_revealed=bool(latest.get('showLeaderboard'))
            and not (same_question and previous.get('showLeaderboard')),
            game_ended=is_game_over(latest) and not (previous is not None and is_game_over(previous)),
            players_changed=_player_names(latest) != _player_names(previous),
        )

    def run(
        self,
        on_update: Callable[[RoomUpdate], None],
        *,
        interval: float = DEFAULT_POLL_INTERVAL_SEC,
        should_stop: Optional[Callable[[RoomUpdate], bool]] = None,
        max_polls: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> int:
        """Poll at a fixed cadence until the game ends, the room is gone,
        ``should_stop`` says so or ``max_polls`` is reached. Returns the poll count."""
        polls = 0
        while True:
            update = self.poll()
            polls += 1
            on_update(update)
            if update.room_gone:
                break
            if should_stop is not None:
                if should_stop(update):
                    break
            elif update.room is not None and is_game_over(update.room):
                break
            if max_polls is not None and polls >= max_polls:
                break
            sleep(interval)
        return polls
