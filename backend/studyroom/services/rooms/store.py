"""Key-value record store for rooms, backed by the ``room_record`` table.

Records are opaque JSON payloads keyed by room code. Reads ignore records
whose ``expires_at`` has passed; ``purge_expired`` evicts them for good.
"""

from contextlib import contextmanager
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from studyroom import db
from studyroom.errors import RoomCodeConflictError, StaleRecordError, StorageError
from studyroom.models import RoomRecord
from .types import utcnow


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[store] {action} failed: {exc}")
        raise StorageError() from exc


class RecordStore:

    def get(self, code: str, now=None) -> Optional[RoomRecord]:
        now = now or utcnow()
        with _storage_errors(f"get code={code}"):
            record = RoomRecord.query.filter_by(code=code).first()
        if record is None or record.is_expired(now):
            return None
        return record

    def insert(self, code: str, set_id: str, payload: str, expires_at, now=None) -> RoomRecord:
        """Insert a new record. A live record with the same code is a conflict;
        an expired one is evicted and replaced."""
        now = now or utcnow()
        with _storage_errors(f"insert code={code}"):
            existing = RoomRecord.query.filter_by(code=code).first()
            if existing is not None:
                if not existing.is_expired(now):
                    raise RoomCodeConflictError()
                db.session.delete(existing)
                db.session.flush()
            record = RoomRecord(
                code=code,
                set_id=set_id,
                payload=payload,
                version=1,
                created_at=now,
                updated_at=now,
                expires_at=expires_at,
            )
            db.session.add(record)
            try:
                db.session.commit()
            except IntegrityError as exc:
                # Another writer inserted the same code first
                db.session.rollback()
                raise RoomCodeConflictError() from exc
        return record

    def put(self, code: str, payload: str, expected_version: int) -> int:
        """Overwrite the payload if the stored version still matches.

        Returns the new version. Raises StaleRecordError when another writer
        got there first (or the record is gone).
        """
        with _storage_errors(f"put code={code}"):
            updated = RoomRecord.query.filter_by(code=code, version=expected_version).update(
                {
                    'payload': payload,
                    'version': expected_version + 1,
                    'updated_at': utcnow(),
                },
                synchronize_session=False,
            )
            if updated == 0:
                # Drop cached rows so the caller's next read sees the winner's write
                db.session.rollback()
                raise StaleRecordError()
            db.session.commit()
        return expected_version + 1

    def delete(self, code: str, expected_version=None) -> bool:
        """Delete a record. With ``expected_version`` the delete is conditional
        like ``put`` and raises StaleRecordError if the record moved on."""
        with _storage_errors(f"delete code={code}"):
            query = RoomRecord.query.filter_by(code=code)
            if expected_version is not None:
                query = query.filter_by(version=expected_version)
            deleted = query.delete(synchronize_session=False)
            if deleted == 0 and expected_version is not None:
                db.session.rollback()
                raise StaleRecordError()
            db.session.commit()
        return deleted > 0

    def find_by_set(self, set_id: str, now=None) -> List[RoomRecord]:
        now = now or utcnow()
        with _storage_errors(f"find set_id={set_id}"):
            return (
                RoomRecord.query.filter(RoomRecord.set_id == set_id, RoomRecord.expires_at > now)
                .order_by(RoomRecord.created_at)
                .all()
            )

    def purge_expired(self, now=None) -> int:
        now = now or utcnow()
        with _storage_errors("purge"):
            removed = RoomRecord.query.filter(RoomRecord.expires_at <= now).delete(synchronize_session=False)
            db.session.commit()
        return removed
