"""
Configuration for the multi-guard auth service.

The module-level parameters are read from the environment and may be loaded
into a Flask application with ``app.config.from_object('multiauth.config')``.
Business logic never reads them directly: :meth:`AuthConfig.from_mapping`
turns a config mapping into an immutable :class:`AuthConfig` once, at
application startup, and that object is passed to the codec, the session
store and the service.
"""

import json
import os
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional

from .domain import TokenKind
from .exceptions import ConfigurationError

JWT_ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
JWT_ACCESS_SECRET_KEY = os.environ.get('JWT_ACCESS_SECRET_KEY')
JWT_REFRESH_SECRET_KEY = os.environ.get('JWT_REFRESH_SECRET_KEY')
JWT_ACCESS_PRIVATE_KEY = os.environ.get('JWT_ACCESS_PRIVATE_KEY')
JWT_ACCESS_PUBLIC_KEY = os.environ.get('JWT_ACCESS_PUBLIC_KEY')
JWT_REFRESH_PRIVATE_KEY = os.environ.get('JWT_REFRESH_PRIVATE_KEY')
JWT_REFRESH_PUBLIC_KEY = os.environ.get('JWT_REFRESH_PUBLIC_KEY')
JWT_ACCESS_EXP = os.environ.get('JWT_ACCESS_EXP', '7200')
JWT_REFRESH_EXP = os.environ.get('JWT_REFRESH_EXP', '604800')
JWT_ISSUER = os.environ.get('JWT_ISSUER', 'multiauth')
JWT_PERSISTENCE = os.environ.get('JWT_PERSISTENCE', '1')
AUTH_GUARDS = os.environ.get('AUTH_GUARDS',
                             '{"user": {"key": "id", "num": -1}}')

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '15')
REDIS_PASSWORD = os.environ.get('REDIS_PASSWORD')
REDIS_TIMEOUT = os.environ.get('REDIS_TIMEOUT', '5.0')
SESSION_STORE_RETRIES = os.environ.get('SESSION_STORE_RETRIES', '10')

SYMMETRIC = ('HS256',)
ASYMMETRIC = ('RS256', 'RS512')
UNLIMITED = -1
SINGLE_SESSION = 0


class GuardConfig(NamedTuple):
    """Per-guard settings."""

    key: str
    """Name of the identity field in the ``extend`` claim."""

    num: int = UNLIMITED
    """
    Maximum concurrent sessions per client type.

    ``-1`` means unlimited, ``0`` means a single session in total, and a
    positive number caps the sessions of each client type.
    """

    limits: Mapping[str, int] = MappingProxyType({})
    """Overrides of :attr:`num` for specific client types."""

    def limit_for(self, client_type: str) -> int:
        """Get the session limit that applies to ``client_type``."""
        return self.limits.get(client_type, self.num)


class AuthConfig(NamedTuple):
    """Immutable snapshot of everything the core needs from configuration."""

    algorithm: str
    access_secret_key: Optional[str]
    refresh_secret_key: Optional[str]
    access_private_key: Optional[str]
    access_public_key: Optional[str]
    refresh_private_key: Optional[str]
    refresh_public_key: Optional[str]
    access_exp: int
    refresh_exp: int
    issuer: str
    persistence: bool
    guards: Mapping[str, GuardConfig]

    @property
    def symmetric(self) -> bool:
        """Whether a shared secret is used to both sign and verify."""
        return self.algorithm in SYMMETRIC

    def signing_key(self, kind: TokenKind) -> str:
        """Key used to sign tokens of the given kind."""
        if self.symmetric:
            return self._secret(kind)
        if kind == TokenKind.REFRESH:
            return self.refresh_private_key
        return self.access_private_key

    def verification_key(self, kind: TokenKind) -> str:
        """Key used to verify tokens of the given kind."""
        if self.symmetric:
            return self._secret(kind)
        if kind == TokenKind.REFRESH:
            return self.refresh_public_key
        return self.access_public_key

    def _secret(self, kind: TokenKind) -> str:
        if kind == TokenKind.REFRESH:
            return self.refresh_secret_key
        return self.access_secret_key

    def guard(self, name: str) -> GuardConfig:
        """Get the configuration for guard ``name``."""
        try:
            return self.guards[name]
        except KeyError as e:
            raise ConfigurationError(f'Guard {name} is not configured') from e

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> 'AuthConfig':
        """
        Build an :class:`AuthConfig` from a Flask-style config mapping.

        Parameters
        ----------
        config : mapping
            For example, ``app.config``. Missing keys fall back to the
            module-level defaults above.

        Returns
        -------
        :class:`AuthConfig`

        Raises
        ------
        :class:`.ConfigurationError`
            Raised if a required parameter is missing or invalid.

        """
        def _get(name: str) -> Any:
            return config.get(name, globals()[name])

        algorithm = str(_get('JWT_ALGORITHM')).upper()
        if algorithm not in SYMMETRIC + ASYMMETRIC:
            raise ConfigurationError(f'Unsupported algorithm: {algorithm}')

        if algorithm in SYMMETRIC:
            required = ('JWT_ACCESS_SECRET_KEY', 'JWT_REFRESH_SECRET_KEY')
        else:
            required = ('JWT_ACCESS_PRIVATE_KEY', 'JWT_ACCESS_PUBLIC_KEY',
                        'JWT_REFRESH_PRIVATE_KEY', 'JWT_REFRESH_PUBLIC_KEY')
        missing = [name for name in required if not _get(name)]
        if missing:
            raise ConfigurationError(
                f'Missing required config parameter: {", ".join(missing)}'
            )

        return cls(
            algorithm=algorithm,
            access_secret_key=_get('JWT_ACCESS_SECRET_KEY'),
            refresh_secret_key=_get('JWT_REFRESH_SECRET_KEY'),
            access_private_key=_get('JWT_ACCESS_PRIVATE_KEY'),
            access_public_key=_get('JWT_ACCESS_PUBLIC_KEY'),
            refresh_private_key=_get('JWT_REFRESH_PRIVATE_KEY'),
            refresh_public_key=_get('JWT_REFRESH_PUBLIC_KEY'),
            access_exp=_positive_int('JWT_ACCESS_EXP', _get('JWT_ACCESS_EXP')),
            refresh_exp=_positive_int('JWT_REFRESH_EXP',
                                      _get('JWT_REFRESH_EXP')),
            issuer=str(_get('JWT_ISSUER')),
            persistence=_flag(_get('JWT_PERSISTENCE')),
            guards=_load_guards(_get('AUTH_GUARDS'))
        )


class RedisConfig(NamedTuple):
    """Connection parameters for the session store."""

    host: str
    port: int
    db: int
    password: Optional[str]
    timeout: float
    retries: int

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> 'RedisConfig':
        """Build a :class:`RedisConfig` from a Flask-style config mapping."""
        def _get(name: str) -> Any:
            return config.get(name, globals()[name])

        try:
            return cls(
                host=str(_get('REDIS_HOST')),
                port=int(_get('REDIS_PORT')),
                db=int(_get('REDIS_DATABASE')),
                password=_get('REDIS_PASSWORD') or None,
                timeout=float(_get('REDIS_TIMEOUT')),
                retries=int(_get('SESSION_STORE_RETRIES'))
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f'Invalid Redis parameter: {e}') from e


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def _positive_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f'{name} must be an integer') from e
    if number <= 0:
        raise ConfigurationError(f'{name} must be positive')
    return number


def _limit(guard: str, value: Any) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f'Bad session limit for {guard}') from e
    if limit < UNLIMITED:
        raise ConfigurationError(f'Bad session limit for {guard}: {limit}')
    return limit


def _load_guards(raw: Any) -> Mapping[str, GuardConfig]:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.decoder.JSONDecodeError as e:
            raise ConfigurationError('AUTH_GUARDS is not valid JSON') from e
    if not isinstance(raw, Mapping) or not raw:
        raise ConfigurationError('AUTH_GUARDS must define at least one guard')

    guards = {}
    for name, data in raw.items():
        if not isinstance(data, Mapping) or not data.get('key'):
            raise ConfigurationError(f'Guard {name} needs an identity key')
        limits = {str(client_type).lower(): _limit(name, value)
                  for client_type, value in data.get('limits', {}).items()}
        guards[name] = GuardConfig(
            key=str(data['key']),
            num=_limit(name, data.get('num', UNLIMITED)),
            limits=MappingProxyType(limits)
        )
    return MappingProxyType(guards)
