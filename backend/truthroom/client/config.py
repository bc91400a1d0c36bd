import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from truthroom.errors import ConfigurationError

TRANSPORTS = ('socketio', 'polling')


@dataclass
class ClientConfig:
    server_url: str
    transport: str = 'socketio'
    # Polling interval for the polling transport (sec)
    poll_interval: float = 2.0
    request_timeout: float = 5.0
    # Bounded retries for reads at session start; writes are never retried
    read_retries: int = 3
    identity_path: Path = Path.home() / '.truthroom' / 'session.json'

    def __post_init__(self):
        parsed = urlparse(self.server_url or '')
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ConfigurationError(
                f'TRUTHROOM_SERVER_URL must be an http(s) URL such as http://localhost:5000, got {self.server_url!r}'
            )
        self.server_url = self.server_url.rstrip('/')
        if self.transport not in TRANSPORTS:
            raise ConfigurationError(f'TRUTHROOM_TRANSPORT must be one of {", ".join(TRANSPORTS)}, got {self.transport!r}')
        if self.poll_interval <= 0 or self.request_timeout <= 0:
            raise ConfigurationError('poll interval and request timeout must be positive')
        self.identity_path = Path(self.identity_path).expanduser()

    @classmethod
    def from_env(cls, environ=None) -> 'ClientConfig':
        env = os.environ if environ is None else environ
        server_url = env.get('TRUTHROOM_SERVER_URL', '').strip()
        if not server_url:
            raise ConfigurationError('TRUTHROOM_SERVER_URL is not set; point it at the truthroom server, e.g. http://localhost:5000')
        try:
            return cls(
                server_url=server_url,
                transport=env.get('TRUTHROOM_TRANSPORT', 'socketio').strip().lower(),
                poll_interval=float(env.get('TRUTHROOM_POLL_INTERVAL_SEC', '2.0')),
                request_timeout=float(env.get('TRUTHROOM_REQUEST_TIMEOUT_SEC', '5.0')),
                read_retries=int(env.get('TRUTHROOM_READ_RETRIES', '3')),
                identity_path=Path(env.get('TRUTHROOM_IDENTITY_PATH') or Path.home() / '.truthroom' / 'session.json'),
            )
        except ValueError as exc:
            raise ConfigurationError(f'invalid truthroom client setting: {exc}') from exc
