"""Helpers for auth tests."""

from typing import Any, Dict, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ...config import AuthConfig

ACCESS_SECRET = 'a' * 32 + 'b' * 32
REFRESH_SECRET = 'c' * 32 + 'd' * 32

GUARDS = {
    'user': {'key': 'id', 'num': -1},
    'admin': {'key': 'admin_id', 'num': 0},
    'shop': {'key': 'id', 'num': 2, 'limits': {'kiosk': 1}},
}


def rsa_pair() -> Tuple[str, str]:
    """Generate a PEM private/public key pair."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode('ascii')
    public = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('ascii')
    return private, public


def app_config(**overrides: Any) -> Dict[str, Any]:
    """A Flask-style config mapping for HS256."""
    config = {
        'JWT_ALGORITHM': 'HS256',
        'JWT_ACCESS_SECRET_KEY': ACCESS_SECRET,
        'JWT_REFRESH_SECRET_KEY': REFRESH_SECRET,
        'JWT_ACCESS_EXP': 60,
        'JWT_REFRESH_EXP': 600,
        'JWT_ISSUER': 'tests',
        'JWT_PERSISTENCE': True,
        'AUTH_GUARDS': GUARDS,
    }
    config.update(overrides)
    return config


def hs_config(**overrides: Any) -> AuthConfig:
    """An HS256 :class:`.AuthConfig`."""
    return AuthConfig.from_mapping(app_config(**overrides))


def rsa_config(algorithm: str = 'RS256', **overrides: Any) -> AuthConfig:
    """An RS256/RS512 :class:`.AuthConfig` with one key pair per kind."""
    access_private, access_public = rsa_pair()
    refresh_private, refresh_public = rsa_pair()
    params = {
        'JWT_ALGORITHM': algorithm,
        'JWT_ACCESS_PRIVATE_KEY': access_private,
        'JWT_ACCESS_PUBLIC_KEY': access_public,
        'JWT_REFRESH_PRIVATE_KEY': refresh_private,
        'JWT_REFRESH_PUBLIC_KEY': refresh_public,
    }
    params.update(overrides)
    return AuthConfig.from_mapping(app_config(**params))
