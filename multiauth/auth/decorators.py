"""
Guard-based protection of Flask routes.

This module provides :func:`guarded`, a decorator factory for routes that
require a valid token for a particular guard:

.. code-block:: python

   from multiauth.auth.decorators import guarded


   @blueprint.route('/admin/dashboard', methods=['GET'])
   @guarded('admin')
   def dashboard():
       admin_id = request.auth.identity('id')
       ...

When the decorated route function is called...

- The token is taken from the ``Authorization`` header, the ``_token``
  parameter or the session, in that order. If there is none,
  :class:`.MissingCredential` is raised.
- The token is verified against the guard and, with persistence enabled,
  against the identity's live sessions. Failures raise the matching
  :class:`.AuthError`, which the :class:`.Auth` extension renders as JSON.
- The verified :class:`.TokenClaims` are attached to the Flask request as
  ``request.auth``.
"""

import logging
from functools import wraps
from typing import Any, Callable

from flask import current_app, request

from ..domain import TokenKind
from ..exceptions import AuthError

logger = logging.getLogger(__name__)


def guarded(guard: str = 'user',
            kind: TokenKind = TokenKind.ACCESS) -> Callable:
    """
    Generate a decorator that requires a valid token for ``guard``.

    Parameters
    ----------
    guard : str
    kind : :class:`.TokenKind`
        Kind of token the route accepts; access tokens by default.

    Returns
    -------
    function

    """
    def protector(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            auth = current_app.extensions['multiauth']
            try:
                request.auth = auth.guard(guard).verify(kind=kind)
            except AuthError as e:
                logger.debug('Request not authorized for %s: %s', guard, e)
                raise
            return func(*args, **kwargs)
        return wrapper
    return protector
