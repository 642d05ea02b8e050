"""Runtime configuration.

Settings are read from the environment exactly once at process start
(Settings.from_env()) and handed to Database and create_app() explicitly.
Nothing else in the codebase reads os.environ for connection parameters.
"""
import os
import json
from dataclasses import dataclass, field
from typing import Optional, Tuple
from urllib.parse import urlsplit

from .errors import ConfigError


def _env_int(env, name, default):
    raw = env.get(name)
    if raw is None or str(raw).strip() == '':
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ConfigError(f'{name} must be an integer, got {raw!r}')


def _env_bool(env, name, default):
    raw = env.get(name)
    if raw is None or str(raw).strip() == '':
        return default
    return str(raw).strip().lower() in ('1', 'true', 'yes', 'on')


def parse_origins(value) -> Tuple[str, ...]:
    """Parse an origin list from a comma-separated string or a JSON array."""
    if value is None:
        return tuple()
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value if str(item).strip())
    value = str(value).strip()
    if not value:
        return tuple()
    if value.startswith('['):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as e:
            raise ConfigError(f'ALLOWED_ORIGINS is not valid JSON: {e}')
        if not isinstance(parsed, list):
            raise ConfigError('ALLOWED_ORIGINS JSON must be a list')
        return tuple(str(item).strip() for item in parsed if str(item).strip())
    return tuple(item.strip() for item in value.split(',') if item.strip())


def validate_origin(origin: str) -> str:
    """Return the origin with any trailing slash removed, or raise ConfigError.

    An origin is scheme://host[:port] with an http/https scheme and no path,
    query or fragment.
    """
    candidate = origin.rstrip('/')
    parts = urlsplit(candidate)
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        raise ConfigError(f'Invalid CORS origin {origin!r}: expected http(s)://host[:port]')
    if parts.path or parts.query or parts.fragment:
        raise ConfigError(f'Invalid CORS origin {origin!r}: must not contain a path')
    try:
        parts.port
    except ValueError:
        raise ConfigError(f'Invalid CORS origin {origin!r}: bad port')
    return candidate


@dataclass(frozen=True)
class Settings:
    """Explicit process configuration."""

    db_host: str = 'localhost'
    db_port: int = 5432
    db_user: str = 'postgres'
    db_password: str = ''
    db_name: str = 'dealers'
    database_url: Optional[str] = None
    pool_min_conn: int = 1
    pool_max_conn: int = 8
    pool_timeout: int = 10
    port: int = 3002
    allowed_origins: Tuple[str, ...] = field(default=('http://localhost:3000',))
    log_level: str = 'INFO'
    init_schema: bool = True

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ConfigError(f'PORT out of range: {self.port}')
        if not 0 < self.db_port < 65536:
            raise ConfigError(f'DB_PORT out of range: {self.db_port}')
        if self.pool_min_conn < 1:
            raise ConfigError('DB_POOL_MIN_CONN must be at least 1')
        if self.pool_min_conn > self.pool_max_conn:
            raise ConfigError(
                f'DB_POOL_MIN_CONN ({self.pool_min_conn}) exceeds DB_POOL_MAX_CONN ({self.pool_max_conn})')
        if self.pool_timeout <= 0:
            raise ConfigError('DB_POOL_TIMEOUT must be positive')
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, 'allowed_origins',
                           tuple(validate_origin(o) for o in parse_origins(self.allowed_origins)))

    @classmethod
    def from_env(cls, env=None):
        """Build Settings from environment variables (os.environ by default)."""
        env = os.environ if env is None else env
        return cls(
            db_host=env.get('DB_HOST', 'localhost'),
            db_port=_env_int(env, 'DB_PORT', 5432),
            db_user=env.get('DB_USER', 'postgres'),
            db_password=env.get('DB_PASSWORD', ''),
            db_name=env.get('DB_NAME', 'dealers'),
            database_url=env.get('DATABASE_URL') or None,
            pool_min_conn=_env_int(env, 'DB_POOL_MIN_CONN', 1),
            pool_max_conn=_env_int(env, 'DB_POOL_MAX_CONN', 8),
            pool_timeout=_env_int(env, 'DB_POOL_TIMEOUT', 10),
            port=_env_int(env, 'PORT', 3002),
            allowed_origins=parse_origins(env.get('ALLOWED_ORIGINS', 'http://localhost:3000')),
            log_level=env.get('LOG_LEVEL', 'INFO'),
            init_schema=_env_bool(env, 'INIT_SCHEMA', True),
        )

    def connection_kwargs(self):
        """Keyword arguments for psycopg2.connect / the connection pool."""
        if self.database_url:
            return {'dsn': self.database_url}
        return {
            'host': self.db_host,
            'port': self.db_port,
            'user': self.db_user,
            'password': self.db_password,
            'dbname': self.db_name,
        }
