"""
Provides token authentication for Flask applications with several guards.

Intended for use in a Flask application factory, for example:

.. code-block:: python

   from flask import Flask, jsonify
   from multiauth.auth import Auth

   auth = Auth()


   def create_web_app() -> Flask:
       app = Flask('someapp')
       app.config.from_object('multiauth.config')
       app.config.from_pyfile('config.py')
       auth.init_app(app)
       return app


   @blueprint.route('/admin/login', methods=['POST'])
   def login():
       admin = check_password(...)     # Not provided by this package.
       tokens = auth.guard('admin').issue({'id': admin.id})
       return jsonify(tokens.to_dict())

"""

import logging
from typing import Any, Dict, List, Optional

from flask import Flask, Response, jsonify, request

from . import credentials
from .service import AuthService
from .sessions.store import get_session_store
from .. import app_logging
from ..config import AuthConfig
from ..domain import SessionRecord, TokenClaims, TokenKind, TokenPair
from ..exceptions import AuthError

logger = logging.getLogger(__name__)

EXTENSION = 'multiauth'


def handle_auth_error(error: AuthError) -> Response:
    """Render an :class:`.AuthError` as a JSON response."""
    response = jsonify(code=error.code, reason=str(error))
    response.status_code = error.status_code
    return response


class GuardContext(object):
    """The auth operations of one guard, bound to the current request."""

    def __init__(self, service: AuthService, guard: str) -> None:
        self.service = service
        self.guard = guard

    def token(self) -> str:
        """Get the token presented with the current request."""
        return credentials.get_token(self.guard)

    def issue(self, extend: Dict[str, Any], access_ttl: Optional[int] = None,
              refresh_ttl: Optional[int] = None) -> TokenPair:
        """
        Log in: mint tokens and keep the access token in the session.

        The client type is taken from the ``client_type`` request value, and
        defaults to ``web``.
        """
        client_type = request.values.get('client_type', 'web')
        tokens = self.service.issue(self.guard, extend, access_ttl,
                                    refresh_ttl, client_type=client_type)
        credentials.remember(self.guard, tokens.access_token)
        return tokens

    def verify(self, token: Optional[str] = None,
               kind: TokenKind = TokenKind.ACCESS) -> TokenClaims:
        """Verify ``token``, or the token presented with the request."""
        if token is None:
            token = self.token()
        return self.service.verify(token, kind, self.guard)

    def is_valid(self, token: Optional[str] = None,
                 kind: TokenKind = TokenKind.ACCESS) -> bool:
        """Whether ``token`` (or the request's token) is valid."""
        try:
            self.verify(token, kind)
        except AuthError:
            return False
        return True

    def refresh(self, access_ttl: Optional[int] = None) -> Dict[str, str]:
        """
        Mint a new access token from the refresh token on the request.

        The new token replaces the one in the session slot, since the
        session's previous access token is revoked.
        """
        access_token = self.service.refresh(self.token(), self.guard,
                                            access_ttl)
        credentials.remember(self.guard, access_token)
        return {'access_token': access_token}

    def logout(self, revoke_all: bool = False) -> None:
        """Revoke the request's session (or all of its identity's)."""
        try:
            self.service.revoke(self.token(), self.guard, revoke_all)
        finally:
            credentials.forget(self.guard)

    def sessions(self, identity: Any) -> List[SessionRecord]:
        """List the live sessions of ``identity``."""
        return self.service.sessions(self.guard, identity)


class Auth(object):
    """Attaches an :class:`.AuthService` to a Flask application."""

    def __init__(self, app: Optional[Flask] = None) -> None:
        """
        Initialize ``app``, if given.

        Parameters
        ----------
        app : :class:`Flask`

        """
        self.service: Optional[AuthService] = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Build the auth service from ``app.config``.

        Raises
        ------
        :class:`.ConfigurationError`
            Raised if the configuration is incomplete.

        """
        self.app = app
        if app.config.get('AUTH_JSON_LOGGING'):
            app_logging.setup_logger(app.config.get('LOG_LEVEL', 'INFO'))
        config = AuthConfig.from_mapping(app.config)
        store = get_session_store(app.config) if config.persistence else None
        self.service = AuthService(config, store=store)
        app.extensions[EXTENSION] = self
        app.register_error_handler(AuthError, handle_auth_error)
        logger.debug('Auth configured with guards %s',
                     ', '.join(config.guards))

    def guard(self, name: str = 'user') -> GuardContext:
        """Select the guard used by subsequent operations."""
        if self.service is None:
            raise RuntimeError('Auth is not initialized for an application')
        self.service.config.guard(name)
        return GuardContext(self.service, name)
