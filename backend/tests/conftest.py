import os
import sys
import pytest

# Ensure the backend root (containing the `studyroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from studyroom import create_app, db


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    ROOM_TTL_HOURS = 24
    ROOM_CODE_LENGTH = 6
    ROOM_CODE_ATTEMPTS = 10
    ROOM_SAVE_RETRIES = 5
    MAX_PLAYER_NAME_LENGTH = 40
    LOG_LEVEL = 'DEBUG'


QUESTIONS = [
    {
        'question': 'What is the powerhouse of the cell?',
        'options': ['Nucleus', 'Mitochondria', 'Ribosome', 'Golgi body'],
        'correctAnswer': 1,
        'explanation': 'Mitochondria produce most of the cell\'s ATP.',
    },
    {
        'question': 'Which gas do plants absorb?',
        'options': ['Oxygen', 'Nitrogen', 'Carbon dioxide', 'Helium'],
        'correctAnswer': 2,
    },
]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import studyroom.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def service(flask_app):
    return flask_app.extensions['room_service']


@pytest.fixture()
def questions():
    return [dict(q) for q in QUESTIONS]


@pytest.fixture()
def make_room(client, questions):
    """Create a room over HTTP and return its JSON."""
    def _make(host='Alice', set_id='set-1', qs=None):
        res = client.post('/multiplayer/rooms', json={
            'setId': set_id,
            'hostName': host,
            'questions': questions if qs is None else qs,
        })
        assert res.status_code == 200, res.get_json()
        return res.get_json()
    return _make
