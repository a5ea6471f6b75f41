import random

import pytest

from studyroom import db
from studyroom.errors import (
    GameAlreadyStartedError,
    GameNotInProgressError,
    InvalidStateError,
    NameTakenError,
    PlayerNotFoundError,
    RoomCodeConflictError,
    RoomNotFoundError,
    StaleRecordError,
    ValidationError,
)
from studyroom.models import RoomRecord
from studyroom.services.rooms import RoomStatus
from studyroom.services.rooms import locks, state_machine
from studyroom.services.rooms.types import name_key, utcnow


def _playing_room(service, questions, *names):
    room = service.create_room('set-1', 'Alice', questions)
    for name in names:
        service.join_room(room.code, name)
    return service.start_room(room.code)


def _assert_invariants(room):
    names = {name_key(p.name) for p in room.players}
    assert room.players, 'rooms without players must be deleted'
    assert name_key(room.host) in names
    assert {name_key(n) for n in room.answered_players} <= names
    assert room.show_leaderboard == (len(room.answered_players) >= len(room.players))
    if room.status != RoomStatus.WAITING:
        assert 0 <= room.current_question_index < len(room.questions)


def test_create_room_defaults(service, questions):
    room = service.create_room('set-9', '  Alice  ', questions)
    assert room.host == 'Alice'
    assert room.status == RoomStatus.WAITING
    assert room.current_question_index == 0
    assert [p.name for p in room.players] == ['Alice']
    assert room.version == 1
    assert (room.expires_at - room.created_at).total_seconds() == 24 * 3600
    stored = service.get_room(room.code)
    assert stored.to_dict() == room.to_dict()


def test_create_room_retries_on_code_collision(service, questions, monkeypatch):
    codes = iter(['AAAAAA', 'AAAAAA', 'BBBBBB'])
    monkeypatch.setattr(state_machine, 'generate_room_code', lambda length: next(codes))
    first = service.create_room('set-1', 'Alice', questions)
    second = service.create_room('set-1', 'Bob', questions)
    assert first.code == 'AAAAAA'
    assert second.code == 'BBBBBB'


def test_create_room_gives_up_after_code_attempts(service, questions, monkeypatch):
    monkeypatch.setattr(state_machine, 'generate_room_code', lambda length: 'AAAAAA')
    service.create_room('set-1', 'Alice', questions)
    with pytest.raises(RoomCodeConflictError):
        service.create_room('set-1', 'Bob', questions)


def test_join_rules(service, questions):
    room = service.create_room('set-1', 'Alice', questions)
    joined = service.join_room(room.code, 'Bob')
    assert [p.name for p in joined.players] == ['Alice', 'Bob']
    assert joined.players[0].id != joined.players[1].id

    with pytest.raises(NameTakenError):
        service.join_room(room.code, 'ALICE')
    with pytest.raises(ValidationError):
        service.join_room(room.code, '   ')
    with pytest.raises(ValidationError):
        service.join_room(room.code, 'x' * 41)
    with pytest.raises(RoomNotFoundError):
        service.join_room('ZZZZZZ', 'Cara')

    service.start_room(room.code)
    with pytest.raises(GameAlreadyStartedError):
        service.join_room(room.code, 'Cara')


def test_start_rules(service, questions):
    empty = service.create_room('set-1', 'Alice', [])
    with pytest.raises(InvalidStateError):
        service.start_room(empty.code)

    room = _playing_room(service, questions)
    assert room.status == RoomStatus.PLAYING
    service.next_question(room.code)
    finished = service.next_question(room.code)
    assert finished.status == RoomStatus.FINISHED
    with pytest.raises(InvalidStateError):
        service.start_room(room.code)


def test_submit_answer_is_idempotent_per_question(service, questions):
    room = _playing_room(service, questions, 'Bob')
    service.submit_answer(room.code, 'Alice', is_correct=True)
    again = service.submit_answer(room.code, 'alice', is_correct=True)
    assert again.find_player('Alice').score == 1
    assert again.answered_players == ['Alice']
    assert again.show_leaderboard is False


def test_submit_answer_requires_an_answer(service, questions):
    room = _playing_room(service, questions)
    with pytest.raises(ValidationError):
        service.submit_answer(room.code, 'Alice')


def test_submit_answer_unknown_player(service, questions):
    room = _playing_room(service, questions)
    with pytest.raises(PlayerNotFoundError):
        service.submit_answer(room.code, 'Mallory', is_correct=True)


def test_scores_accumulate_across_questions(service, questions):
    room = _playing_room(service, questions, 'Bob')
    service.submit_answer(room.code, 'Alice', answer_index=1)
    service.submit_answer(room.code, 'Bob', answer_index=0)
    service.next_question(room.code)
    service.submit_answer(room.code, 'Alice', answer_index=2)
    room = service.submit_answer(room.code, 'Bob', answer_index=2)
    assert {p.name: p.score for p in room.players} == {'Alice': 2, 'Bob': 1}
    assert room.show_leaderboard is True


def test_next_question_requires_playing(service, questions):
    room = service.create_room('set-1', 'Alice', questions)
    with pytest.raises(GameNotInProgressError):
        service.next_question(room.code)


def test_leaving_player_is_removed_from_answered(service, questions):
    room = _playing_room(service, questions, 'Bob', 'Cara')
    service.submit_answer(room.code, 'Alice', is_correct=True)
    service.submit_answer(room.code, 'Bob', is_correct=True)
    room = service.leave_room(room.code, 'Bob')
    assert room.answered_players == ['Alice']
    assert room.show_leaderboard is False
    # Cara was the only one left to answer; her leaving completes the round
    room = service.leave_room(room.code, 'Cara')
    assert room.show_leaderboard is True
    _assert_invariants(room)


def test_last_leave_deletes_room(service, questions):
    room = service.create_room('set-1', 'Alice', questions)
    service.join_room(room.code, 'Bob')
    assert service.leave_room(room.code, 'Alice').host == 'Bob'
    assert service.leave_room(room.code, 'Bob') is None
    with pytest.raises(RoomNotFoundError):
        service.get_room(room.code)
    assert RoomRecord.query.count() == 0


def test_expired_room_is_not_found_and_purged(service, questions):
    room = service.create_room('set-1', 'Alice', questions)
    RoomRecord.query.filter_by(code=room.code).update({'expires_at': utcnow()}, synchronize_session=False)
    db.session.commit()
    with pytest.raises(RoomNotFoundError):
        service.get_room(room.code)
    with pytest.raises(RoomNotFoundError):
        service.join_room(room.code, 'Bob')
    assert service.rooms_for_set('set-1') == []
    assert service.purge_expired() == 1
    assert RoomRecord.query.count() == 0


def test_concurrent_answer_is_reapplied_not_lost(service, questions, monkeypatch):
    """Bob's answer commits between Alice's load and Alice's save."""
    room = _playing_room(service, questions, 'Bob')
    repository = service.repository
    original_get = repository.get
    loads = []

    def racing_get(code):
        loaded = original_get(code)
        loads.append(loaded.version)
        if len(loads) == 1:
            service.submit_answer(code, 'Bob', is_correct=True)
        return loaded

    monkeypatch.setattr(repository, 'get', racing_get)
    final = service.submit_answer(room.code, 'Alice', is_correct=True)

    # Alice's first attempt worked on a stale copy and was re-applied
    assert len(loads) == 3
    assert loads[0] == loads[1]
    assert loads[2] == loads[0] + 1
    assert {p.name: p.score for p in final.players} == {'Alice': 1, 'Bob': 1}
    assert sorted(final.answered_players) == ['Alice', 'Bob']
    assert final.show_leaderboard is True


def test_stale_writes_give_up_after_retries(service, questions, monkeypatch):
    room = _playing_room(service, questions)

    def always_stale(room):
        raise StaleRecordError()

    monkeypatch.setattr(service.repository, 'save', always_stale)
    with pytest.raises(StaleRecordError):
        service.submit_answer(room.code, 'Alice', is_correct=True)


def test_random_operations_keep_invariants(service, questions):
    rng = random.Random(1234)
    names = ['Alice', 'Bob', 'Cara', 'Dan', 'Eve']
    room = service.create_room('set-1', 'Alice', questions * 3)
    code = room.code
    scores = {}
    for _ in range(200):
        op = rng.choice(['join', 'start', 'answer', 'next', 'leave'])
        name = rng.choice(names)
        try:
            if op == 'join':
                room = service.join_room(code, name)
            elif op == 'start':
                room = service.start_room(code)
            elif op == 'answer':
                room = service.submit_answer(code, name, is_correct=rng.random() < 0.5)
            elif op == 'next':
                room = service.next_question(code)
            else:
                room = service.leave_room(code, name)
        except (NameTakenError, InvalidStateError, PlayerNotFoundError):
            continue
        if room is None:
            break
        _assert_invariants(room)
        for player in room.players:
            assert player.score >= scores.get(player.id, 0)
            scores[player.id] = player.score


def test_room_locks_are_released_after_each_operation(service, questions):
    before = locks.active_room_locks()
    for _ in range(5):
        room = _playing_room(service, questions, 'Bob')
        service.next_question(room.code)
        service.next_question(room.code)
    assert locks.active_room_locks() == before

    RoomRecord.query.update({'expires_at': utcnow()}, synchronize_session=False)
    db.session.commit()
    assert service.purge_expired() == 5
    assert locks.active_room_locks() == before


def test_room_lock_is_held_during_an_operation(service, questions, monkeypatch):
    room = service.create_room('set-1', 'Alice', questions)
    original_get = service.repository.get
    seen = []

    def tracking_get(code):
        seen.append(code in locks._room_locks)
        return original_get(code)

    monkeypatch.setattr(service.repository, 'get', tracking_get)
    service.join_room(room.code, 'Bob')
    assert seen == [True]
    assert room.code not in locks._room_locks


def test_set_id_longer_than_column_is_rejected(service, questions):
    with pytest.raises(ValidationError):
        service.create_room('x' * 129, 'Alice', questions)
    assert service.create_room('x' * 128, 'Alice', questions).set_id == 'x' * 128


@pytest.mark.parametrize('code_length', [0, 13])
def test_room_code_length_must_fit_column(code_length):
    with pytest.raises(ValueError):
        state_machine.RoomService(code_length=code_length)
