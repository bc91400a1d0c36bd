"""HTTP client for the room store mutators."""
import logging
import time
from http import HTTPStatus
from typing import Any, Dict, List

import httpx

from truthroom.codes import normalize_room_code
from truthroom.errors import StoreUnavailable, error_from_payload

logger = logging.getLogger(__name__)


class HttpRoomStore:
    """Room store reached over the server's ``/api/rooms`` endpoints.

    Reads may be retried with ``get_room(..., retries=n)``; writes raise on the
    first failure, because replaying a join or a draw is not idempotent.
    """

    def __init__(self, client: httpx.Client, retry_delay: float = 0.5):
        self._client = client
        self._retry_delay = retry_delay

    @classmethod
    def from_config(cls, config) -> 'HttpRoomStore':
        return cls(httpx.Client(base_url=config.server_url, timeout=config.request_timeout))

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise StoreUnavailable(f'{method} {path} timed out') from exc
        except httpx.RequestError as exc:
            raise StoreUnavailable(f'{method} {path} failed: {exc.__class__.__name__}') from exc
        if response.status_code >= HTTPStatus.BAD_REQUEST:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise error_from_payload(response.status_code, payload)
        return response.json()

    def create_room(self) -> Dict[str, Any]:
        return self._request('POST', '/api/rooms')

    def get_room(self, room_id: str, retries: int = 0) -> Dict[str, Any]:
        code = normalize_room_code(room_id)
        attempt = 0
        while True:
            try:
                return self._request('GET', f'/api/rooms/{code}')
            except StoreUnavailable as exc:
                if attempt >= retries:
                    raise
                attempt += 1
                logger.warning('[get-retry] room=%s attempt=%d error=%s', code, attempt, exc)
                time.sleep(self._retry_delay * attempt)

    def join_room(self, room_id: str) -> Dict[str, Any]:
        return self._request('POST', f'/api/rooms/{normalize_room_code(room_id)}/join')

    def leave_room(self, room_id: str) -> Dict[str, Any]:
        return self._request('POST', f'/api/rooms/{normalize_room_code(room_id)}/leave')

    def submit_question(self, room_id: str, text: str) -> Dict[str, Any]:
        return self._request('POST', f'/api/rooms/{normalize_room_code(room_id)}/questions', json={'text': text})

    def start_game(self, room_id: str) -> Dict[str, Any]:
        return self._request('POST', f'/api/rooms/{normalize_room_code(room_id)}/start')

    def draw_question(self, room_id: str) -> Dict[str, Any]:
        return self._request('POST', f'/api/rooms/{normalize_room_code(room_id)}/draw')

    def end_game(self, room_id: str) -> Dict[str, Any]:
        return self._request('POST', f'/api/rooms/{normalize_room_code(room_id)}/end')

    def forward_action(self, room_id: str, participant_id: str, action: Dict[str, Any]) -> bool:
        body = {'participant_id': participant_id, 'type': action.get('type'), 'payload': action.get('payload')}
        return bool(self._request('POST', f'/api/rooms/{normalize_room_code(room_id)}/actions', json=body).get('delivered'))

    def pull_actions(self, room_id: str, participant_id: str) -> List[Dict[str, Any]]:
        result = self._request(
            'GET', f'/api/rooms/{normalize_room_code(room_id)}/actions', params={'participant_id': participant_id}
        )
        return list(result.get('requests') or [])
