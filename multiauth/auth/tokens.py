"""
Signing and verification of access and refresh tokens.

Tokens are compact JWS strings carrying the claims ``iss``, ``iat``, ``exp``,
``extend`` and ``guard`` (see :class:`.domain.TokenClaims`). The algorithm and
the key for each :class:`.domain.TokenKind` come from :class:`.AuthConfig`:
``HS256`` uses one shared secret per kind, ``RS256`` and ``RS512`` use one
private/public key pair per kind.
"""

import logging
from typing import Optional

import jwt

from ..config import AuthConfig
from ..domain import TokenClaims, TokenKind
from ..exceptions import Expired, GuardMismatch, InvalidSignature, \
    MalformedClaims, NotYetValid, SigningError

logger = logging.getLogger(__name__)

LEEWAY = 60
"""Allowed clock skew, in seconds, when checking ``exp``, ``nbf`` and ``iat``."""

REQUIRED_CLAIMS = ['exp', 'iat']


class TokenCodec(object):
    """Encodes and decodes signed token payloads for a configuration."""

    def __init__(self, config: AuthConfig, leeway: int = LEEWAY) -> None:
        self.config = config
        self.leeway = leeway

    def sign(self, claims: TokenClaims, kind: TokenKind) -> str:
        """
        Sign ``claims`` with the key configured for ``kind``.

        Parameters
        ----------
        claims : :class:`.TokenClaims`
        kind : :class:`.TokenKind`

        Returns
        -------
        str
            A compact JWS.

        Raises
        ------
        :class:`.SigningError`
            Raised if the key material does not fit the algorithm, or the
            claims cannot be serialized.

        """
        kind = TokenKind(kind)
        key = self.config.signing_key(kind)
        try:
            return jwt.encode(claims.to_payload(), key,
                              algorithm=self.config.algorithm)
        except (jwt.exceptions.PyJWTError, ValueError, TypeError,
                NotImplementedError) as e:
            logger.error('Could not sign %s token: %s', kind.name, e)
            raise SigningError(f'Could not sign token: {e}') from e

    def verify(self, token: str, kind: TokenKind,
               expected_guard: str) -> TokenClaims:
        """
        Verify ``token`` and return its claims.

        Parameters
        ----------
        token : str
        kind : :class:`.TokenKind`
            Selects the verification key.
        expected_guard : str
            The ``guard`` claim must match this value.

        Returns
        -------
        :class:`.TokenClaims`

        Raises
        ------
        :class:`.InvalidSignature`
            The signature does not verify or the token is not a JWT.
        :class:`.GuardMismatch`
            The token belongs to another guard.
        :class:`.NotYetValid`
            ``nbf`` or ``iat`` is in the future.
        :class:`.Expired`
            ``exp`` has passed, even allowing for :attr:`leeway`.
        :class:`.MalformedClaims`
            Required claims are missing or have the wrong shape.

        """
        kind = TokenKind(kind)
        key = self.config.verification_key(kind)
        try:
            payload = jwt.decode(token, key,
                                 algorithms=[self.config.algorithm],
                                 leeway=self.leeway,
                                 options={'require': REQUIRED_CLAIMS})
        except jwt.exceptions.ExpiredSignatureError as e:
            raise Expired('Token has expired') from e
        except jwt.exceptions.ImmatureSignatureError as e:
            raise NotYetValid('Token is not yet valid') from e
        except (jwt.exceptions.MissingRequiredClaimError,
                jwt.exceptions.InvalidIssuedAtError) as e:
            raise MalformedClaims(f'Token claims are malformed: {e}') from e
        except jwt.exceptions.InvalidSignatureError as e:
            logger.warning('Bad %s token signature', kind.name)
            raise InvalidSignature('Token signature is invalid') from e
        except (jwt.exceptions.PyJWTError, ValueError, TypeError) as e:
            if self._signed_payload(token, key) is not None:
                raise MalformedClaims(f'Token claims are malformed: {e}') \
                    from e
            logger.warning('Could not decode %s token: %s', kind.name, e)
            raise InvalidSignature('Not a valid token') from e

        if not isinstance(payload.get('extend'), dict) \
                or not isinstance(payload.get('guard'), str):
            raise MalformedClaims('Token lacks extend or guard claims')
        if payload['guard'] != expected_guard:
            logger.warning('Token for guard %s presented to guard %s',
                           payload['guard'], expected_guard)
            raise GuardMismatch('Token was issued for another guard')
        try:
            return TokenClaims.from_payload(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedClaims(f'Token claims are malformed: {e}') from e

    def _signed_payload(self, token: str, key: str) -> Optional[dict]:
        """
        Get the payload of a correctly signed token, ignoring time claims.

        Used to tell a bad ``exp``, ``nbf`` or ``iat`` value in a genuine
        token from a token that is not ours at all.
        """
        try:
            return jwt.decode(token, key, algorithms=[self.config.algorithm],
                              options={'verify_exp': False,
                                       'verify_nbf': False,
                                       'verify_iat': False})
        except (jwt.exceptions.PyJWTError, ValueError, TypeError):
            return None
