import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///studyroom.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Frontend origins allowed to call the API (comma separated)
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',')
        if origin.strip()
    ]
    # Rooms expire this many hours after creation
    ROOM_TTL_HOURS = int(os.environ.get('ROOM_TTL_HOURS', '24'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    # Attempts at finding an unused room code before giving up
    ROOM_CODE_ATTEMPTS = int(os.environ.get('ROOM_CODE_ATTEMPTS', '10'))
    # Reload-and-reapply attempts when a room was written concurrently
    ROOM_SAVE_RETRIES = int(os.environ.get('ROOM_SAVE_RETRIES', '5'))
    MAX_PLAYER_NAME_LENGTH = int(os.environ.get('MAX_PLAYER_NAME_LENGTH', '40'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
