import json
from typing import List

from studyroom.errors import RoomNotFoundError
from .store import RecordStore
from .types import Room


def _encode(room: Room) -> str:
    # The version lives in its own column, not in the payload
    return json.dumps(room.to_dict(include_version=False), ensure_ascii=False)


def _decode(record) -> Room:
    return Room.from_dict(json.loads(record.payload), version=record.version)


class RoomRepository:
    """Room-level reads and whole-record writes on top of the record store."""

    def __init__(self, store=None):
        self.store = store or RecordStore()

    def create(self, room: Room) -> Room:
        record = self.store.insert(
            room.code,
            room.set_id,
            _encode(room),
            room.expires_at,
            now=room.created_at,
        )
        room.version = record.version
        return room

    def get(self, code: str) -> Room:
        record = self.store.get(code)
        if record is None:
            raise RoomNotFoundError()
        return _decode(record)

    def save(self, room: Room) -> Room:
        """Overwrite the stored room, conditional on the version it was loaded at."""
        room.version = self.store.put(room.code, _encode(room), room.version)
        return room

    def delete(self, code: str, version=None) -> bool:
        """Delete the room; with ``version`` only if nobody wrote it since."""
        return self.store.delete(code, expected_version=version)

    def find_by_set(self, set_id: str) -> List[Room]:
        return [_decode(record) for record in self.store.find_by_set(set_id)]

    def purge_expired(self) -> int:
        return self.store.purge_expired()
