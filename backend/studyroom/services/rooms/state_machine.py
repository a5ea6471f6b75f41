"""Multiplayer room state machine.

Rooms move ``waiting -> playing -> finished``. Every operation loads the
whole room, validates the transition, mutates it in memory and saves the
whole record back. Saves are conditional on the version that was loaded, so
a write that lost a race is re-applied on a fresh copy instead of silently
overwriting the winner. Operations on one room are also serialised within
the process by ``room_lock``.
"""

from datetime import timedelta
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from flask import current_app

from studyroom.errors import (
    GameAlreadyStartedError,
    GameNotInProgressError,
    InvalidStateError,
    NameTakenError,
    PlayerNotFoundError,
    RoomCodeConflictError,
    StaleRecordError,
    ValidationError,
)
from studyroom.models import ROOM_CODE_MAX_LENGTH, SET_ID_MAX_LENGTH, generate_room_code
from .locks import room_lock
from .repository import RoomRepository
from .scoring import award_points, build_leaderboard, is_answer_correct
from .types import LeaderboardEntry, Player, Question, Room, RoomStatus, name_key, utcnow

# What a mutation asks _mutate to do with the room afterwards
_SAVE = 'save'
_SKIP = 'skip'
_DELETE = 'delete'


def normalize_code(code) -> str:
    if not isinstance(code, str) or not code.strip():
        raise ValidationError('Room code is required')
    return code.strip().upper()


def _new_player(name: str) -> Player:
    return Player(id=f"player_{uuid4().hex[:12]}", name=name, score=0)


class RoomService:

    def __init__(
        self,
        repository: Optional[RoomRepository] = None,
        *,
        ttl_hours: int = 24,
        code_length: int = 6,
        code_attempts: int = 10,
        save_retries: int = 5,
        max_name_length: int = 40,
    ):
        if not 1 <= code_length <= ROOM_CODE_MAX_LENGTH:
            raise ValueError(f'ROOM_CODE_LENGTH must be between 1 and {ROOM_CODE_MAX_LENGTH}, got {code_length}')
        self.repository = repository or RoomRepository()
        self.ttl = timedelta(hours=ttl_hours)
        self.code_length = code_length
        self.code_attempts = code_attempts
        self.save_retries = save_retries
        self.max_name_length = max_name_length

    @classmethod
    def from_config(cls, config, repository=None):
        return cls(
            repository,
            ttl_hours=int(config.get('ROOM_TTL_HOURS', 24)),
            code_length=int(config.get('ROOM_CODE_LENGTH', 6)),
            code_attempts=int(config.get('ROOM_CODE_ATTEMPTS', 10)),
            save_retries=int(config.get('ROOM_SAVE_RETRIES', 5)),
            max_name_length=int(config.get('MAX_PLAYER_NAME_LENGTH', 40)),
        )

    def _clean_name(self, name, field='playerName') -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f'{field} is required')
        name = name.strip()
        if len(name) > self.max_name_length:
            raise ValidationError(f'{field} must be at most {self.max_name_length} characters')
        return name

    def _mutate(self, code: str, action: str, apply) -> Optional[Room]:
        """Load, apply and save one room, re-applying on a fresh copy if the
        save lost a race. Returns None when the mutation deleted the room."""
        code = normalize_code(code)
        with room_lock(code):
            for attempt in range(1, self.save_retries + 1):
                room = self.repository.get(code)
                outcome = apply(room)
                try:
                    if outcome == _SKIP:
                        return room
                    if outcome == _DELETE:
                        self.repository.delete(code, version=room.version)
                        return None
                    return self.repository.save(room)
                except StaleRecordError:
                    current_app.logger.warning(
                        f"[{action}] room={code} stale write, retry {attempt}/{self.save_retries}"
                    )
        raise StaleRecordError()

    def create_room(self, set_id, host_name, questions: Iterable = ()) -> Room:
        if set_id is None or (isinstance(set_id, str) and not set_id.strip()):
            raise ValidationError('setId is required')
        if len(str(set_id).strip()) > SET_ID_MAX_LENGTH:
            raise ValidationError(f'setId must be at most {SET_ID_MAX_LENGTH} characters')
        host_name = self._clean_name(host_name, field='hostName')
        parsed = [
            q if isinstance(q, Question) else Question.from_dict(q, position=i)
            for i, q in enumerate(questions or [])
        ]
        now = utcnow()
        for attempt in range(1, self.code_attempts + 1):
            room = Room(
                code=generate_room_code(self.code_length),
                set_id=str(set_id).strip(),
                host=host_name,
                players=[_new_player(host_name)],
                questions=parsed,
                created_at=now,
                expires_at=now + self.ttl,
            )
            try:
                self.repository.create(room)
            except RoomCodeConflictError:
                current_app.logger.warning(f"[room-create] code collision code={room.code} attempt={attempt}")
                continue
            current_app.logger.info(
                f"[room-create] room={room.code} host={host_name} questions={len(parsed)} set={room.set_id}"
            )
            return room
        raise RoomCodeConflictError('Could not allocate a unique room code, please retry')

    def get_room(self, code) -> Room:
        return self.repository.get(normalize_code(code))

    def join_room(self, code, player_name) -> Room:
        name = self._clean_name(player_name)

        def apply(room):
            if room.status != RoomStatus.WAITING:
                raise GameAlreadyStartedError()
            if room.find_player(name) is not None:
                raise NameTakenError()
            room.players.append(_new_player(name))
            return _SAVE

        room = self._mutate(code, 'room-join', apply)
        current_app.logger.info(f"[room-join] room={room.code} player={name} players={len(room.players)}")
        return room

    def start_room(self, code) -> Room:
        def apply(room):
            if room.status == RoomStatus.PLAYING:
                # Retried start: already running, leave progress alone
                return _SKIP
            if room.status == RoomStatus.FINISHED:
                raise InvalidStateError('Game has already finished')
            if not room.questions:
                raise InvalidStateError('Room has no questions to play')
            room.status = RoomStatus.PLAYING
            room.current_question_index = 0
            room.reset_question_progress()
            return _SAVE

        room = self._mutate(code, 'room-start', apply)
        current_app.logger.info(f"[room-start] room={room.code} players={len(room.players)}")
        return room

    def submit_answer(self, code, player_name, is_correct=None, answer_index=None) -> Room:
        """Record a player's answer to the current question.

        Correctness comes from ``answer_index`` checked against the current
        question when given, otherwise from the client-reported ``is_correct``.
        A second submission for the same question succeeds without scoring.
        """
        if is_correct is None and answer_index is None:
            raise ValidationError('isCorrect or answerIndex is required')
        if not isinstance(player_name, str) or not player_name.strip():
            raise ValidationError('playerName is required')
        result = {}

        def apply(room):
            player = room.find_player(player_name)
            if player is None:
                raise PlayerNotFoundError()
            if room.status != RoomStatus.PLAYING:
                raise GameNotInProgressError()
            if room.has_answered(player.name):
                result['duplicate'] = True
                return _SKIP
            if answer_index is not None:
                correct = is_answer_correct(room.current_question, answer_index)
            else:
                correct = bool(is_correct)
            result.update(duplicate=False, correct=correct, points=award_points(player, correct))
            room.answered_players.append(player.name)
            room.refresh_leaderboard_flag()
            return _SAVE

        room = self._mutate(code, 'room-answer', apply)
        if result['duplicate']:
            current_app.logger.info(f"[room-answer] room={room.code} player={player_name.strip()} duplicate ignored")
        else:
            current_app.logger.info(
                f"[room-answer] room={room.code} question={room.current_question_index} "
                f"player={player_name.strip()} correct={result['correct']} points={result['points']} "
                f"answered={len(room.answered_players)}/{len(room.players)}"
            )
        return room

    def next_question(self, code) -> Room:
        def apply(room):
            if room.status != RoomStatus.PLAYING:
                raise GameNotInProgressError()
            if room.is_last_question:
                room.status = RoomStatus.FINISHED
            else:
                room.current_question_index += 1
            room.reset_question_progress()
            return _SAVE

        room = self._mutate(code, 'room-next', apply)
        if room.status == RoomStatus.FINISHED:
            current_app.logger.info(f"[room-finish] room={room.code} after question={room.current_question_index}")
        else:
            current_app.logger.info(f"[room-next] room={room.code} question={room.current_question_index}")
        return room

    def leave_room(self, code, player_name) -> Optional[Room]:
        """Remove a player. Returns None if the room was deleted because it emptied."""
        if not isinstance(player_name, str) or not player_name.strip():
            raise ValidationError('playerName is required')
        departed = {}

        def apply(room):
            player = room.find_player(player_name)
            if player is None:
                raise PlayerNotFoundError()
            departed['name'] = player.name
            room.players.remove(player)
            if not room.players:
                return _DELETE
            key = name_key(player.name)
            room.answered_players = [n for n in room.answered_players if name_key(n) != key]
            if name_key(room.host) == key:
                room.host = room.players[0].name
            room.refresh_leaderboard_flag()
            return _SAVE

        room = self._mutate(code, 'room-leave', apply)
        if room is None:
            current_app.logger.info(f"[room-delete] room={normalize_code(code)} last player {departed['name']} left")
        else:
            current_app.logger.info(f"[room-leave] room={room.code} player={departed['name']} host={room.host}")
        return room

    def leaderboard(self, code) -> Tuple[Room, List[LeaderboardEntry]]:
        room = self.get_room(code)
        return room, build_leaderboard(room.players)

    def rooms_for_set(self, set_id) -> List[Room]:
        if set_id is None or not str(set_id).strip():
            raise ValidationError('setId is required')
        return self.repository.find_by_set(str(set_id).strip())

    def purge_expired(self) -> int:
        removed = self.repository.purge_expired()
        current_app.logger.info(f"[room-purge] removed={removed}")
        return removed
