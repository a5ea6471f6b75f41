from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from studyroom.errors import ValidationError

OPTION_COUNT = 4


class RoomStatus(str, Enum):
    WAITING = 'waiting'
    PLAYING = 'playing'
    FINISHED = 'finished'


def name_key(name: str) -> str:
    """Identity key for player names: surrounding whitespace and case are ignored."""
    return name.strip().casefold()


def utcnow() -> datetime:
    # Naive UTC, which is what the DateTime columns store
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _isoformat(value: datetime) -> str:
    return value.replace(microsecond=0).isoformat() + 'Z'


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.rstrip('Z'))


@dataclass
class Question:
    question: str
    options: List[str]
    correct_answer: int
    explanation: Optional[str] = None

    @classmethod
    def from_dict(cls, data, position=None):
        """Build a question from its JSON form, raising ValidationError on bad input."""
        where = f'questions[{position}]' if position is not None else 'question'
        if not isinstance(data, dict):
            raise ValidationError(f'{where} must be an object')
        text = data.get('question')
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(f'{where}.question is required')
        options = data.get('options')
        if not isinstance(options, list) or len(options) != OPTION_COUNT:
            raise ValidationError(f'{where}.options must be a list of {OPTION_COUNT} strings')
        if not all(isinstance(option, str) for option in options):
            raise ValidationError(f'{where}.options must be a list of {OPTION_COUNT} strings')
        correct = data.get('correctAnswer')
        if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < OPTION_COUNT:
            raise ValidationError(f'{where}.correctAnswer must be an integer from 0 to {OPTION_COUNT - 1}')
        explanation = data.get('explanation')
        if explanation is not None and not isinstance(explanation, str):
            raise ValidationError(f'{where}.explanation must be a string')
        return cls(question=text, options=list(options), correct_answer=correct, explanation=explanation)

    def to_dict(self):
        data = {
            'question': self.question,
            'options': list(self.options),
            'correctAnswer': self.correct_answer,
        }
        if self.explanation is not None:
            data['explanation'] = self.explanation
        return data


@dataclass
class Player:
    id: str
    name: str
    score: int = 0

    @classmethod
    def from_dict(cls, data):
        return cls(id=data['id'], name=data['name'], score=int(data.get('score', 0)))

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'score': self.score}


@dataclass
class Room:
    code: str
    set_id: str
    host: str
    players: List[Player]
    questions: List[Question]
    created_at: datetime
    expires_at: datetime
    status: RoomStatus = RoomStatus.WAITING
    current_question_index: int = 0
    answered_players: List[str] = field(default_factory=list)
    show_leaderboard: bool = False
    # Write counter of the stored record this room was loaded from
    version: int = 0

    def find_player(self, name: str) -> Optional[Player]:
        key = name_key(name)
        for player in self.players:
            if name_key(player.name) == key:
                return player
        return None

    def has_answered(self, name: str) -> bool:
        key = name_key(name)
        return any(name_key(answered) == key for answered in self.answered_players)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    @property
    def is_last_question(self) -> bool:
        return self.current_question_index >= len(self.questions) - 1

    def refresh_leaderboard_flag(self) -> None:
        self.show_leaderboard = bool(self.players) and len(self.answered_players) >= len(self.players)

    def reset_question_progress(self) -> None:
        self.answered_players = []
        self.show_leaderboard = False

    @classmethod
    def from_dict(cls, data, version=0):
        return cls(
            code=data['code'],
            set_id=data['setId'],
            host=data['host'],
            players=[Player.from_dict(p) for p in data.get('players', [])],
            questions=[Question.from_dict(q, position=i) for i, q in enumerate(data.get('questions', []))],
            status=RoomStatus(data.get('status', RoomStatus.WAITING.value)),
            current_question_index=int(data.get('currentQuestionIndex', 0)),
            answered_players=list(data.get('answeredPlayers', [])),
            show_leaderboard=bool(data.get('showLeaderboard', False)),
            created_at=_parse_datetime(data['createdAt']),
            expires_at=_parse_datetime(data['expiresAt']),
            version=version,
        )

    def to_dict(self, include_version=True):
        data = {
            'code': self.code,
            'setId': self.set_id,
            'host': self.host,
            'players': [p.to_dict() for p in self.players],
            'status': self.status.value,
            'currentQuestionIndex': self.current_question_index,
            'questions': [q.to_dict() for q in self.questions],
            'answeredPlayers': list(self.answered_players),
            'showLeaderboard': self.show_leaderboard,
            'createdAt': _isoformat(self.created_at),
            'expiresAt': _isoformat(self.expires_at),
        }
        if include_version:
            data['version'] = self.version
        return data


@dataclass
class LeaderboardEntry:
    rank: int
    id: str
    name: str
    score: int

    def to_dict(self):
        return {'rank': self.rank, 'id': self.id, 'name': self.name, 'score': self.score}
