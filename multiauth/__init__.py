"""
Multi-guard token authentication.

Issues, verifies, refreshes and revokes paired access/refresh tokens for
several independent guards (e.g. ``user`` and ``admin``), and keeps every
identity's live sessions in Redis so that session limits and logout apply
server-side. See :mod:`multiauth.auth`.
"""

from .domain import TokenKind, TokenClaims, SessionRecord, TokenPair
