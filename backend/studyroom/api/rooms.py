from flask import Blueprint, jsonify, request, current_app

from studyroom.errors import ValidationError
from studyroom.models import SET_ID_MAX_LENGTH
from studyroom.services.rooms import Question, RoomService
from studyroom.services.rooms.types import OPTION_COUNT

rooms = Blueprint('rooms', __name__)


def _service() -> RoomService:
    return current_app.extensions['room_service']


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _required_string(data, field):
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field} is required')
    return value.strip()


def _parse_questions(data):
    questions = data.get('questions', [])
    if questions is None:
        return []
    if not isinstance(questions, list):
        raise ValidationError('questions must be a list')
    return [Question.from_dict(q, position=i) for i, q in enumerate(questions)]


def _parse_answer(data):
    """Return (is_correct, answer_index); exactly one of them is set."""
    if 'answerIndex' in data and data['answerIndex'] is not None:
        answer_index = data['answerIndex']
        if isinstance(answer_index, bool) or not isinstance(answer_index, int) or not 0 <= answer_index < OPTION_COUNT:
            raise ValidationError(f'answerIndex must be an integer from 0 to {OPTION_COUNT - 1}')
        return None, answer_index
    is_correct = data.get('isCorrect')
    if not isinstance(is_correct, bool):
        raise ValidationError('isCorrect (boolean) or answerIndex is required')
    return is_correct, None


@rooms.route('', methods=['POST'])
def create_room():
    data = _json_body()
    set_id = data.get('setId')
    if isinstance(set_id, bool) or not isinstance(set_id, (str, int)) or not str(set_id).strip():
        raise ValidationError('setId is required')
    if len(str(set_id).strip()) > SET_ID_MAX_LENGTH:
        raise ValidationError(f'setId must be at most {SET_ID_MAX_LENGTH} characters')
    host_name = _required_string(data, 'hostName')
    room = _service().create_room(set_id, host_name, _parse_questions(data))
    return jsonify(room.to_dict())


@rooms.route('', methods=['GET'])
def list_rooms_for_set():
    set_id = request.args.get('setId', '')
    if not set_id.strip():
        raise ValidationError('setId query parameter is required')
    found = _service().rooms_for_set(set_id)
    return jsonify({'rooms': [room.to_dict() for room in found]})


@rooms.route('/<string:code>', methods=['GET'])
def get_room(code):
    return jsonify(_service().get_room(code).to_dict())


@rooms.route('/<string:code>/join', methods=['POST'])
def join_room(code):
    player_name = _required_string(_json_body(), 'playerName')
    return jsonify(_service().join_room(code, player_name).to_dict())


@rooms.route('/<string:code>/start', methods=['POST'])
def start_room(code):
    return jsonify(_service().start_room(code).to_dict())


@rooms.route('/<string:code>/answer', methods=['POST'])
def submit_answer(code):
    data = _json_body()
    player_name = _required_string(data, 'playerName')
    is_correct, answer_index = _parse_answer(data)
    room = _service().submit_answer(code, player_name, is_correct=is_correct, answer_index=answer_index)
    return jsonify(room.to_dict())


@rooms.route('/<string:code>/next', methods=['POST'])
def next_question(code):
    return jsonify(_service().next_question(code).to_dict())


@rooms.route('/<string:code>/leave', methods=['POST'])
def leave_room(code):
    player_name = _required_string(_json_body(), 'playerName')
    room = _service().leave_room(code, player_name)
    if room is None:
        return jsonify({'deleted': True})
    return jsonify(room.to_dict())


@rooms.route('/<string:code>/leaderboard', methods=['GET'])
def get_leaderboard(code):
    room, entries = _service().leaderboard(code)
    return jsonify({
        'code': room.code,
        'status': room.status.value,
        'currentQuestionIndex': room.current_question_index,
        'totalQuestions': len(room.questions),
        'totalPlayers': len(room.players),
        'leaderboard': [entry.to_dict() for entry in entries],
    })
