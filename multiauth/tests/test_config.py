"""Tests for :mod:`multiauth.config`."""

from unittest import TestCase

from .. import config
from ..domain import TokenKind
from ..exceptions import ConfigurationError

SECRETS = {
    'JWT_ACCESS_SECRET_KEY': 'access-secret',
    'JWT_REFRESH_SECRET_KEY': 'refresh-secret',
}


class TestAuthConfig(TestCase):
    """Tests for :meth:`.AuthConfig.from_mapping`."""

    def test_defaults(self):
        """Unset parameters fall back to the module defaults."""
        auth_config = config.AuthConfig.from_mapping(dict(
            SECRETS, AUTH_GUARDS='{"user": {"key": "id", "num": -1}}'
        ))
        self.assertEqual(auth_config.algorithm, 'HS256')
        self.assertTrue(auth_config.symmetric)
        self.assertEqual(auth_config.access_exp, 7200)
        self.assertEqual(auth_config.refresh_exp, 604800)
        self.assertEqual(auth_config.issuer, 'multiauth')
        self.assertEqual(auth_config.guard('user').key, 'id')
        self.assertEqual(auth_config.guard('user').num, config.UNLIMITED)

    def test_keys_per_kind(self):
        """Each token kind has its own secret."""
        auth_config = config.AuthConfig.from_mapping(SECRETS)
        self.assertEqual(auth_config.signing_key(TokenKind.ACCESS),
                         'access-secret')
        self.assertEqual(auth_config.verification_key(TokenKind.REFRESH),
                         'refresh-secret')

    def test_rsa_keys(self):
        """RSA algorithms sign with private keys and verify with public."""
        auth_config = config.AuthConfig.from_mapping({
            'JWT_ALGORITHM': 'rs512',
            'JWT_ACCESS_PRIVATE_KEY': 'ap',
            'JWT_ACCESS_PUBLIC_KEY': 'aq',
            'JWT_REFRESH_PRIVATE_KEY': 'rp',
            'JWT_REFRESH_PUBLIC_KEY': 'rq',
        })
        self.assertEqual(auth_config.algorithm, 'RS512')
        self.assertFalse(auth_config.symmetric)
        self.assertEqual(auth_config.signing_key(TokenKind.REFRESH), 'rp')
        self.assertEqual(auth_config.verification_key(TokenKind.ACCESS), 'aq')

    def test_missing_keys(self):
        """Key material required by the algorithm must be present."""
        with self.assertRaises(ConfigurationError):
            config.AuthConfig.from_mapping({
                'JWT_ACCESS_SECRET_KEY': 'access-secret',
                'JWT_REFRESH_SECRET_KEY': ''
            })
        with self.assertRaises(ConfigurationError):
            config.AuthConfig.from_mapping(dict(SECRETS,
                                                JWT_ALGORITHM='RS256'))

    def test_unsupported_algorithm(self):
        """Only HS256, RS256 and RS512 are supported."""
        with self.assertRaises(ConfigurationError):
            config.AuthConfig.from_mapping(dict(SECRETS,
                                                JWT_ALGORITHM='none'))

    def test_bad_lifetimes(self):
        """Token lifetimes must be positive integers."""
        for value in ('0', '-1', 'soon'):
            with self.assertRaises(ConfigurationError):
                config.AuthConfig.from_mapping(dict(SECRETS,
                                                    JWT_ACCESS_EXP=value))

    def test_persistence_flag(self):
        """Persistence may be switched off with a string or a bool."""
        for value in ('0', 'false', False):
            auth_config = config.AuthConfig.from_mapping(
                dict(SECRETS, JWT_PERSISTENCE=value)
            )
            self.assertFalse(auth_config.persistence)
        auth_config = config.AuthConfig.from_mapping(
            dict(SECRETS, JWT_PERSISTENCE='true')
        )
        self.assertTrue(auth_config.persistence)


class TestGuards(TestCase):
    """Tests for guard configuration."""

    def load(self, guards):
        """Load a configuration with ``guards``."""
        return config.AuthConfig.from_mapping(dict(SECRETS,
                                                   AUTH_GUARDS=guards))

    def test_json(self):
        """Guards may be given as JSON, with per client type limits."""
        auth_config = self.load(
            '{"user": {"key": "id"},'
            ' "shop": {"key": "shop_id", "num": 2, "limits": {"Kiosk": 1}}}'
        )
        self.assertEqual(auth_config.guard('user').num, config.UNLIMITED)
        shop = auth_config.guard('shop')
        self.assertEqual(shop.key, 'shop_id')
        self.assertEqual(shop.limit_for('kiosk'), 1)
        self.assertEqual(shop.limit_for('web'), 2)

    def test_mapping(self):
        """Guards may be given as a mapping."""
        auth_config = self.load({'admin': {'key': 'admin_id', 'num': 0}})
        self.assertEqual(auth_config.guard('admin').num,
                         config.SINGLE_SESSION)

    def test_unknown_guard(self):
        """Unconfigured guards are reported."""
        with self.assertRaises(ConfigurationError):
            self.load({'user': {'key': 'id'}}).guard('admin')

    def test_invalid(self):
        """Bad guard definitions are rejected."""
        for guards in ('not json', '{}', {'user': {}},
                       {'user': {'key': 'id', 'num': -2}},
                       {'user': {'key': 'id', 'num': 'many'}},
                       {'user': {'key': 'id', 'limits': {'web': -5}}}):
            with self.assertRaises(ConfigurationError):
                self.load(guards)


class TestRedisConfig(TestCase):
    """Tests for :meth:`.RedisConfig.from_mapping`."""

    def test_values(self):
        """String parameters are converted."""
        params = config.RedisConfig.from_mapping({
            'REDIS_HOST': 'cache',
            'REDIS_PORT': '6380',
            'REDIS_DATABASE': '2',
            'REDIS_PASSWORD': '',
            'REDIS_TIMEOUT': '0.5',
            'SESSION_STORE_RETRIES': '3'
        })
        self.assertEqual(params, config.RedisConfig('cache', 6380, 2, None,
                                                    0.5, 3))

    def test_invalid(self):
        """Non-numeric ports are rejected."""
        with self.assertRaises(ConfigurationError):
            config.RedisConfig.from_mapping({'REDIS_PORT': 'http'})
