"""
Exceptions raised by the token and session services.

Every exception carries a stable, machine-readable ``code`` and the HTTP
``status_code`` that a web layer should use when rendering it. Callers should
never see an exception from :mod:`jwt` or :mod:`redis` directly; those are
chained onto one of these.
"""


class AuthError(RuntimeError):
    """Base class for all authentication errors."""

    code = 'auth_error'
    status_code = 401


class ConfigurationError(AuthError):
    """Raised when a required configuration parameter is missing or bad."""

    code = 'configuration_error'
    status_code = 500


class MissingCredential(AuthError):
    """No token was found on the request."""

    code = 'missing_credential'
    status_code = 401


class InvalidSignature(AuthError):
    """The token signature does not verify, or the token is not a JWT."""

    code = 'invalid_signature'
    status_code = 401


class GuardMismatch(InvalidSignature):
    """The token was issued for a different guard."""


class NotYetValid(AuthError):
    """The token is not valid yet (``nbf`` or ``iat`` in the future)."""

    code = 'not_yet_valid'
    status_code = 403


class Expired(AuthError):
    """
    The token has expired, or its session is no longer live.

    The two causes are deliberately indistinguishable to the caller.
    """

    code = 'expired'
    status_code = 402


class MalformedClaims(AuthError):
    """The token payload lacks the expected claims."""

    code = 'malformed_claims'
    status_code = 401


class SigningError(AuthError):
    """The token could not be signed with the configured key material."""

    code = 'signing_error'
    status_code = 500


class NotFound(AuthError):
    """No live session matches the token."""

    code = 'not_found'
    status_code = 404


class StoreUnavailable(AuthError):
    """The session store could not complete the operation."""

    code = 'store_unavailable'
    status_code = 503


class CorruptSessionData(StoreUnavailable):
    """A stored session set could not be decoded."""
