from typing import Any, Dict, List, Optional

import httpx

from studyroom.errors import RoomError, StorageError, error_class_for_kind, error_class_for_status


def _error_from_response(response: httpx.Response) -> RoomError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get('error') or f'Request failed with status {response.status_code}'
    kind = body.get('kind')
    cls = error_class_for_kind(kind) if kind else RoomError
    if cls is RoomError:
        cls = error_class_for_status(response.status_code)
    return cls(message)


class RoomApiClient:
    """Synchronous client for the multiplayer room endpoints.

    Every method returns the decoded JSON body. Error responses are raised as
    the matching ``studyroom.errors`` class; transport failures become
    ``StorageError`` so callers can treat them as retryable.
    """

    def __init__(self, base_url: str, *, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None) -> None:
        self._client = httpx.Client(base_url=base_url.rstrip('/'), timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None, params=None) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            raise StorageError(f'Could not reach the room service: {exc}') from exc
        if not response.is_success:
            raise _error_from_response(response)
        try:
            return response.json()
        except ValueError as exc:
            # A proxy or gateway answered in place of the room service
            raise StorageError(f'Unreadable response from the room service (status {response.status_code})') from exc

    def create_room(self, set_id: str, host_name: str, questions: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        return self._request('POST', '/multiplayer/rooms', json={
            'setId': set_id,
            'hostName': host_name,
            'questions': questions or [],
        })

    def get_room(self, code: str) -> Dict[str, Any]:
        return self._request('GET', f'/multiplayer/rooms/{code}')

    def join_room(self, code: str, player_name: str) -> Dict[str, Any]:
        return self._request('POST', f'/multiplayer/rooms/{code}/join', json={'playerName': player_name})

    def start_room(self, code: str) -> Dict[str, Any]:
        return self._request('POST', f'/multiplayer/rooms/{code}/start')

    def submit_answer(self, code: str, player_name: str, *, is_correct: Optional[bool] = None,
                      answer_index: Optional[int] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {'playerName': player_name}
        if answer_index is not None:
            body['answerIndex'] = answer_index
        else:
            body['isCorrect'] = is_correct
        return self._request('POST', f'/multiplayer/rooms/{code}/answer', json=body)

    def next_question(self, code: str) -> Dict[str, Any]:
        return self._request('POST', f'/multiplayer/rooms/{code}/next')

    def leave_room(self, code: str, player_name: str) -> Dict[str, Any]:
        return self._request('POST', f'/multiplayer/rooms/{code}/leave', json={'playerName': player_name})

    def leaderboard(self, code: str) -> Dict[str, Any]:
        return self._request('GET', f'/multiplayer/rooms/{code}/leaderboard')

    def rooms_for_set(self, set_id: str) -> List[Dict[str, Any]]:
        return self._request('GET', '/multiplayer/rooms', params={'setId': set_id})['rooms']
