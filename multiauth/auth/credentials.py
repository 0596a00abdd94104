"""Locate the token presented with a Flask request."""

import logging

from flask import request, session

from ..exceptions import MissingCredential

logger = logging.getLogger(__name__)

BEARER = 'Bearer '
TOKEN_PARAM = '_token'


def session_key(guard: str) -> str:
    """Name of the server-side session slot holding a guard's token."""
    return f'token_{guard}'


def _strip_bearer(value: str) -> str:
    if value.startswith(BEARER):
        return value[len(BEARER):]
    return value


def get_token(guard: str) -> str:
    """
    Get the token presented for ``guard``.

    Looks at the ``Authorization: Bearer`` header first, then the ``_token``
    request parameter (which may also carry a ``Bearer`` prefix), then the
    session slot ``token_<guard>``.

    Raises
    ------
    :class:`.MissingCredential`
        No token was found in any of those places.

    """
    header = request.headers.get('Authorization', '')
    token = request.values.get(TOKEN_PARAM)
    if header.startswith(BEARER):
        token = header[len(BEARER):]
    if token:
        token = _strip_bearer(token).strip()
    if not token:
        token = session.get(session_key(guard))
    if not token:
        logger.debug('No auth token for guard %s', guard)
        raise MissingCredential('Authorization is missing')
    return token


def remember(guard: str, token: str) -> None:
    """Keep ``token`` in the session slot for ``guard``."""
    session[session_key(guard)] = token


def forget(guard: str) -> None:
    """Clear the session slot for ``guard``."""
    session.pop(session_key(guard), None)
