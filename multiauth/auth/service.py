"""
Issue, verify, refresh and revoke tokens for any configured guard.

:class:`AuthService` ties :class:`.TokenCodec` to :class:`.SessionStore`. When
session persistence is enabled, a token is only accepted while it is a member
of its identity's live session set, so revoking or evicting a session
invalidates its tokens before they expire. A token that is no longer a member
is reported as :class:`.Expired`, exactly like a token whose ``exp`` passed.
"""

import logging
import secrets
import time
from typing import Any, Callable, Dict, List, Optional

from .sessions.store import SessionStore
from .tokens import TokenCodec
from ..config import AuthConfig
from ..domain import SessionRecord, TokenClaims, TokenKind, TokenPair
from ..exceptions import AuthError, ConfigurationError, Expired, \
    MalformedClaims, NotFound

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_TYPE = 'web'
NONCE_BYTES = 12


def _generate_nonce() -> str:
    return secrets.token_urlsafe(NONCE_BYTES)


class AuthService(object):
    """Token and session lifecycle for every guard in an :class:`.AuthConfig`."""

    def __init__(self, config: AuthConfig, codec: Optional[TokenCodec] = None,
                 store: Optional[SessionStore] = None,
                 clock: Callable[[], float] = time.time) -> None:
        if config.persistence and store is None:
            raise ConfigurationError('Session persistence needs a store')
        self.config = config
        self.codec = codec if codec is not None else TokenCodec(config)
        self.store = store if config.persistence else None
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def _identity(self, guard: str, extend: Dict[str, Any]) -> Any:
        key = self.config.guard(guard).key
        try:
            identity = extend[key]
        except (KeyError, TypeError) as e:
            raise MalformedClaims(f'Identity field {key} is missing') from e
        if identity is None or identity == '':
            raise MalformedClaims(f'Identity field {key} is empty')
        return identity

    def issue(self, guard: str, extend: Dict[str, Any],
              access_ttl: Optional[int] = None,
              refresh_ttl: Optional[int] = None,
              client_type: str = DEFAULT_CLIENT_TYPE) -> TokenPair:
        """
        Mint an access/refresh token pair for an authenticated identity.

        Parameters
        ----------
        guard : str
        extend : dict
            Data about the subject. Must contain the guard's identity field.
        access_ttl : int
            Lifetime of the access token in seconds. Falls back to the
            configured default if not given or not positive.
        refresh_ttl : int
            As ``access_ttl``, for the refresh token.
        client_type : str
            Kind of client, e.g. ``web`` or ``mobile``. Session limits apply
            per client type.

        Returns
        -------
        :class:`.TokenPair`

        Raises
        ------
        :class:`.MalformedClaims`
            ``extend`` lacks the identity field.
        :class:`.SigningError`
        :class:`.StoreUnavailable`

        """
        guard_config = self.config.guard(guard)
        identity = self._identity(guard, extend)
        access_ttl = access_ttl if access_ttl and access_ttl > 0 \
            else self.config.access_exp
        refresh_ttl = refresh_ttl if refresh_ttl and refresh_ttl > 0 \
            else self.config.refresh_exp
        client_type = (client_type or DEFAULT_CLIENT_TYPE).lower()

        now = self._now()
        access_claims = TokenClaims(
            issuer=self.config.issuer,
            issued_at=now,
            expires_at=now + access_ttl,
            extend=dict(extend),
            guard=guard,
            nonce=_generate_nonce()
        )
        refresh_claims = access_claims._replace(expires_at=now + refresh_ttl)
        access_token = self.codec.sign(access_claims, TokenKind.ACCESS)
        refresh_token = self.codec.sign(refresh_claims, TokenKind.REFRESH)

        if self.store is not None:
            record = SessionRecord(
                access_token=access_token,
                refresh_token=refresh_token,
                client_type=client_type,
                access_issued_at=now,
                access_ttl=access_ttl,
                refresh_issued_at=now,
                refresh_ttl=refresh_ttl
            )
            self.store.insert(guard, identity, record,
                              guard_config.limit_for(client_type))
        logger.info('Issued %s tokens for %s/%s', client_type, guard, identity)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=access_ttl,
            refresh_expires_in=refresh_ttl
        )

    def verify(self, token: str, kind: TokenKind = TokenKind.ACCESS,
               guard: str = 'user') -> TokenClaims:
        """
        Verify a token and, with persistence, its session membership.

        Parameters
        ----------
        token : str
        kind : :class:`.TokenKind`
        guard : str

        Returns
        -------
        :class:`.TokenClaims`

        Raises
        ------
        :class:`.InvalidSignature`
        :class:`.NotYetValid`
        :class:`.Expired`
            The token expired, or its session was revoked, evicted or swept.
        :class:`.MalformedClaims`
        :class:`.StoreUnavailable`

        """
        kind = TokenKind(kind)
        claims = self.codec.verify(token, kind, guard)
        if self.store is not None:
            identity = self._identity(guard, claims.extend)
            try:
                self.store.confirm_membership(guard, identity, token, kind)
            except NotFound as e:
                raise Expired('Session has expired') from e
        return claims

    def is_valid(self, token: str, kind: TokenKind = TokenKind.ACCESS,
                 guard: str = 'user') -> bool:
        """Whether ``token`` would pass :meth:`verify`."""
        try:
            self.verify(token, kind, guard)
        except AuthError as e:
            logger.debug('Token is not valid: %s', e)
            return False
        return True

    def refresh(self, token: str, guard: str = 'user',
                access_ttl: Optional[int] = None) -> str:
        """
        Mint a new access token from a refresh token.

        The new token carries the refresh token's claims with ``exp``
        pushed back by ``access_ttl`` (or the configured default) and a new
        nonce. With persistence, it replaces the access token of the refresh
        token's session, so the previous access token of that session stops
        working.

        Returns
        -------
        str
            The new access token.

        """
        claims = self.verify(token, TokenKind.REFRESH, guard)
        extension = access_ttl if access_ttl and access_ttl > 0 \
            else self.config.access_exp
        access_claims = claims._replace(expires_at=claims.expires_at + extension,
                                        nonce=_generate_nonce())
        access_token = self.codec.sign(access_claims, TokenKind.ACCESS)

        if self.store is not None:
            now = self._now()
            identity = self._identity(guard, claims.extend)
            try:
                self.store.rotate_access(guard, identity, token, access_token,
                                         now, access_claims.expires_at - now)
            except NotFound as e:
                raise Expired('Session has expired') from e
        return access_token

    def revoke(self, token: str, guard: str = 'user',
               revoke_all: bool = False) -> int:
        """
        Log out the session of an access token, or all of its identity's.

        Returns
        -------
        int
            Number of sessions removed from the store.

        Raises
        ------
        :class:`.Expired`
            The token's session is already gone.

        """
        claims = self.verify(token, TokenKind.ACCESS, guard)
        if self.store is None:
            return 0
        identity = self._identity(guard, claims.extend)
        if revoke_all:
            removed = self.store.revoke_all(guard, identity)
        else:
            removed = self.store.revoke_one(guard, identity, token)
        logger.info('Revoked %i session(s) for %s/%s', removed, guard, identity)
        return removed

    def sessions(self, guard: str, identity: Any) -> List[SessionRecord]:
        """List the live sessions of ``identity`` under ``guard``."""
        self.config.guard(guard)
        if self.store is None:
            return []
        return self.store.sessions(guard, identity)
