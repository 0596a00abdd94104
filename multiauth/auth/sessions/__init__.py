"""
Integration with the distributed session store.

Each identity's live sessions are kept as one versioned JSON document in a
key-value store (Redis), keyed by guard and identity. Tokens themselves carry
no session ID: a token is recognized by comparing it with the tokens held in
its identity's session set.

See :mod:`.store` and :mod:`.serialize`.
"""

from . import serialize, store
from .store import SessionStore, get_session_store
