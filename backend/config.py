import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Required; create_app refuses to start without it
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGINS', 'http://localhost:5173').split(',') if o.strip()]
    # Start-eligibility floor, checked by clients and again at the store
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MIN_QUESTIONS = int(os.environ.get('MIN_QUESTIONS', '3'))
    MAX_QUESTION_LENGTH = int(os.environ.get('MAX_QUESTION_LENGTH', '280'))
    # Compare-and-swap retries for start/draw/end before giving up
    ROOM_CAS_MAX_ATTEMPTS = int(os.environ.get('ROOM_CAS_MAX_ATTEMPTS', '25'))
    # Forwarded requests kept per room for hosts that poll instead of holding a socket
    PENDING_REQUEST_LIMIT = int(os.environ.get('PENDING_REQUEST_LIMIT', '50'))
    # Rooms untouched for this long are deleted by the reaper (sec). 0 disables.
    ROOM_TTL_SEC = int(os.environ.get('ROOM_TTL_SEC', '21600'))
    REAPER_INTERVAL_SEC = int(os.environ.get('REAPER_INTERVAL_SEC', '300'))
