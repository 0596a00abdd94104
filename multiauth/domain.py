"""Defines token and session concepts for the multi-guard auth service."""

from enum import IntEnum
from typing import Any, Dict, NamedTuple, Optional


class TokenKind(IntEnum):
    """The two kinds of token minted per login."""

    ACCESS = 1
    """Short-lived token used to authorize requests."""

    REFRESH = 2
    """Long-lived token used only to mint new access tokens."""


class TokenClaims(NamedTuple):
    """Claims carried by an access or refresh token."""

    issuer: str
    """Value of the ``iss`` claim."""

    issued_at: int
    """Epoch seconds at which the token was issued (``iat``)."""

    expires_at: int
    """Epoch seconds at which the token expires (``exp``)."""

    extend: Dict[str, Any]
    """Application data about the authenticated subject."""

    guard: str
    """Name of the guard for which the token was issued."""

    not_before: Optional[int] = None
    """Epoch seconds before which the token must be rejected (``nbf``)."""

    nonce: Optional[str] = None
    """Random value that tells apart logins made in the same second."""

    def to_payload(self) -> Dict[str, Any]:
        """Generate a JWT payload from these claims."""
        payload = {
            'iss': self.issuer,
            'iat': self.issued_at,
            'exp': self.expires_at,
            'extend': self.extend,
            'guard': self.guard,
        }
        if self.not_before is not None:
            payload['nbf'] = self.not_before
        if self.nonce is not None:
            payload['nonce'] = self.nonce
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'TokenClaims':
        """Load claims from a decoded JWT payload."""
        return cls(
            issuer=payload.get('iss', ''),
            issued_at=int(payload['iat']),
            expires_at=int(payload['exp']),
            extend=payload['extend'],
            guard=payload['guard'],
            not_before=payload.get('nbf'),
            nonce=payload.get('nonce')
        )

    def identity(self, key: str) -> Any:
        """Get the identity value stored under ``key`` in :attr:`extend`."""
        return self.extend[key]


class SessionRecord(NamedTuple):
    """
    One login session: an access/refresh token pair plus metadata.

    A record is access-valid while ``now < access_issued_at + access_ttl``
    and refresh-valid while ``now < refresh_issued_at + refresh_ttl``. Once
    the access token lapses, :attr:`access_token` is cleared but the record
    is kept until the refresh token lapses too.
    """

    access_token: str
    refresh_token: str
    client_type: str
    access_issued_at: int
    access_ttl: int
    refresh_issued_at: int
    refresh_ttl: int

    @property
    def access_expires_at(self) -> int:
        """Epoch seconds at which the access token lapses."""
        return self.access_issued_at + self.access_ttl

    @property
    def refresh_expires_at(self) -> int:
        """Epoch seconds at which the refresh token lapses."""
        return self.refresh_issued_at + self.refresh_ttl

    def access_valid(self, now: int) -> bool:
        """Whether the access token is still live at ``now``."""
        return now < self.access_expires_at

    def refresh_valid(self, now: int) -> bool:
        """Whether the refresh token is still live at ``now``."""
        return now < self.refresh_expires_at

    def token(self, kind: TokenKind) -> str:
        """Get the token of the given kind."""
        if kind == TokenKind.REFRESH:
            return self.refresh_token
        return self.access_token

    def valid(self, kind: TokenKind, now: int) -> bool:
        """Whether the token of the given kind is still live at ``now``."""
        if kind == TokenKind.REFRESH:
            return self.refresh_valid(now)
        return self.access_valid(now)

    def matches(self, token: str, kind: TokenKind) -> bool:
        """Whether ``token`` is this session's token of the given kind."""
        return bool(token) and self.token(kind) == token

    def without_access(self) -> 'SessionRecord':
        """Copy of this record with the access token cleared."""
        return self._replace(access_token='')


class TokenPair(NamedTuple):
    """Tokens handed to the client after a successful login."""

    access_token: str
    refresh_token: str
    expires_in: int
    """Lifetime of the access token, in seconds."""

    refresh_expires_in: int
    """Lifetime of the refresh token, in seconds."""

    token_type: str = 'Bearer'

    def to_dict(self) -> Dict[str, Any]:
        """Generate a JSON-friendly representation of the token pair."""
        return self._asdict()
