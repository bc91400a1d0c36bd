"""Room code and participant id formats."""
import random
import re
import string

from .errors import InvalidRoomCode

ROOM_CODE_LENGTH = 4
ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
PARTICIPANT_ID_LENGTH = 12

_ROOM_CODE_RE = re.compile(r'^[A-Z0-9]{4}$')


def random_room_code(length=ROOM_CODE_LENGTH):
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))


def generate_participant_id(length=PARTICIPANT_ID_LENGTH):
    """Opaque alphanumeric token used only for host-identity comparison."""
    return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))


def normalize_room_code(raw) -> str:
    """Uppercase and validate a user-entered room code.

    Raises InvalidRoomCode unless the result is exactly four characters
    from [A-Z0-9].
    """
    code = str(raw or '').strip().upper()
    if not _ROOM_CODE_RE.match(code):
        raise InvalidRoomCode(f'room code must be {ROOM_CODE_LENGTH} characters from A-Z and 0-9', room_id=code or None)
    return code
