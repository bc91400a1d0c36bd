"""Per-device record of which room and participant this client last was.

Only touched at session start and end, never on every mutation.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class MemoryIdentityCache:
    def __init__(self, entry: Optional[Dict[str, str]] = None):
        self._entry = dict(entry) if entry else None

    def save(self, room_id: str, participant_id: str) -> None:
        self._entry = {'room_id': room_id, 'participant_id': participant_id}

    def load(self) -> Optional[Dict[str, str]]:
        return dict(self._entry) if self._entry else None

    def clear(self) -> None:
        self._entry = None


class FileIdentityCache:
    """JSON file holding ``{room_id, participant_id}``."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, room_id: str, participant_id: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + '.tmp')
        tmp.write_text(json.dumps({'room_id': room_id, 'participant_id': participant_id}))
        tmp.replace(self.path)

    def load(self) -> Optional[Dict[str, str]]:
        try:
            data = json.loads(self.path.read_text())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning('[identity-unreadable] path=%s error=%s', self.path, exc)
            self.clear()
            return None
        if not isinstance(data, dict) or not data.get('room_id') or not data.get('participant_id'):
            self.clear()
            return None
        return {'room_id': str(data['room_id']), 'participant_id': str(data['participant_id'])}

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
