from studyroom import db
import secrets
import string

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
# Column widths; inputs longer than these are rejected before they reach the database
ROOM_CODE_MAX_LENGTH = 12
SET_ID_MAX_LENGTH = 128


def generate_room_code(length=6):
    """Generate a short, shareable room code.

    Uniqueness is enforced when the record is inserted; callers retry with a
    fresh code on conflict.
    """
    return ''.join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


class RoomRecord(db.Model):
    """One multiplayer room, stored whole as a JSON payload keyed by its code."""

    __tablename__ = 'room_record'
    code = db.Column(db.String(ROOM_CODE_MAX_LENGTH), primary_key=True)
    # Secondary lookup key: the study set the room was created from
    set_id = db.Column(db.String(SET_ID_MAX_LENGTH), nullable=False, index=True)
    payload = db.Column(db.Text, nullable=False)
    # Bumped on every write; saves are conditional on the version that was read
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    def is_expired(self, now):
        return self.expires_at <= now
