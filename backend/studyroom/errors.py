"""Error taxonomy shared by the room services, the HTTP layer and the client.

Every error carries a client-safe ``message``, the HTTP ``status_code`` it is
rendered with and a short ``kind`` string that is echoed in the response body
so remote callers can tell the errors apart.
"""

from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException


class RoomError(Exception):
    status_code = 500
    kind = 'room_error'
    default_message = 'Room operation failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class NotFoundError(RoomError):
    status_code = 404
    kind = 'not_found'
    default_message = 'Not found'


class RoomNotFoundError(NotFoundError):
    kind = 'room_not_found'
    default_message = 'Room not found'


class PlayerNotFoundError(NotFoundError):
    kind = 'player_not_found'
    default_message = 'Player not found'


class ConflictError(RoomError):
    status_code = 409
    kind = 'conflict'
    default_message = 'Conflict'


class RoomCodeConflictError(ConflictError):
    kind = 'room_code_conflict'
    default_message = 'Room code already exists'


class NameTakenError(ConflictError):
    kind = 'name_taken'
    default_message = 'Player name already taken'


class StaleRecordError(ConflictError):
    kind = 'stale_record'
    default_message = 'Room was modified by another request, please retry'


class InvalidStateError(RoomError):
    status_code = 400
    kind = 'invalid_state'
    default_message = 'Operation not allowed in the current room state'


class GameAlreadyStartedError(InvalidStateError):
    kind = 'game_already_started'
    default_message = 'Game already started'


class GameNotInProgressError(InvalidStateError):
    kind = 'game_not_in_progress'
    default_message = 'Game is not in progress'


class ValidationError(RoomError):
    status_code = 400
    kind = 'validation'
    default_message = 'Invalid request'


class StorageError(RoomError):
    status_code = 500
    kind = 'storage'
    default_message = 'Room storage is unavailable'


def _all_subclasses(cls):
    for sub in cls.__subclasses__():
        yield sub
        yield from _all_subclasses(sub)


def error_class_for_kind(kind):
    """Return the error class registered under ``kind`` (RoomError if unknown)."""
    for cls in _all_subclasses(RoomError):
        if cls.kind == kind:
            return cls
    return RoomError


def error_class_for_status(status_code):
    """Fallback for responses without a known kind. Only server-side
    failures map to the retryable StorageError."""
    if status_code >= 500:
        return StorageError
    return {
        400: ValidationError,
        404: NotFoundError,
        409: ConflictError,
    }.get(status_code, RoomError)


def handle_room_error(exc):
    if exc.status_code >= 500:
        current_app.logger.error(f"[error] kind={exc.kind} message={exc.message}", exc_info=exc.__cause__ or exc)
    else:
        current_app.logger.info(f"[rejected] kind={exc.kind} message={exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


def handle_http_error(exc):
    return jsonify({'error': exc.description, 'kind': 'http'}), exc.code


def handle_unexpected_error(exc):
    current_app.logger.exception(f"[error] unhandled {type(exc).__name__}")
    return jsonify({'error': 'Internal server error', 'kind': 'internal'}), 500


def register_error_handlers(flask_app):
    flask_app.register_error_handler(RoomError, handle_room_error)
    flask_app.register_error_handler(HTTPException, handle_http_error)
    flask_app.register_error_handler(Exception, handle_unexpected_error)
