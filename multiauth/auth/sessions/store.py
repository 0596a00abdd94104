"""
Internal service API for the distributed session store.

Each (guard, identity) pair owns one Redis key, ``token_<guard>:<identity>``,
holding the ordered list of that identity's live sessions (see
:mod:`.serialize`). Every change to a list is a read-modify-write done inside
an optimistic Redis transaction: the key is ``WATCH``ed, read, changed in
memory and written back with ``MULTI``/``EXEC``. If another worker changed
the key in the meantime, the whole step is retried. Different identities and
different guards use different keys, so they never contend.
"""

import logging
import time
from typing import Any, Callable, List, Mapping, Optional, Tuple

import redis

from . import serialize
from ...config import RedisConfig, SINGLE_SESSION
from ...domain import SessionRecord, TokenKind
from ...exceptions import NotFound, StoreUnavailable

logger = logging.getLogger(__name__)

Sessions = List[SessionRecord]
Mutation = Callable[[Optional[Sessions], int], Tuple[Optional[Sessions], bool, Any]]


def sweep_sessions(sessions: Sessions, now: int) -> Tuple[Sessions, bool]:
    """
    Drop refresh-expired sessions and clear lapsed access tokens.

    Returns
    -------
    list
        The sessions that are still refresh-valid, in their original order.
    bool
        Whether anything changed.

    """
    kept = []
    changed = False
    for record in sessions:
        if not record.refresh_valid(now):
            changed = True
            continue
        if record.access_token and not record.access_valid(now):
            record = record.without_access()
            changed = True
        kept.append(record)
    return kept, changed


def apply_limit(sessions: Sessions, client_type: str, limit: int) -> Sessions:
    """
    Make room for one more session of ``client_type``.

    With a positive ``limit``, the oldest sessions of that client type are
    evicted until fewer than ``limit`` remain. A ``limit`` of zero evicts
    everything. Any negative ``limit`` evicts nothing.
    """
    if limit == SINGLE_SESSION:
        return []
    if limit < 0:
        return list(sessions)
    same_type = [i for i, record in enumerate(sessions)
                 if record.client_type == client_type]
    evict = set(same_type[:max(0, len(same_type) - limit + 1)])
    return [record for i, record in enumerate(sessions) if i not in evict]


class SessionStore(object):
    """
    Manages a connection to Redis.

    The Redis client is thread safe and connections are attached at the time
    a command is executed. This class holds the client, the retry bound for
    optimistic transactions, and the clock used for expiry checks.
    """

    def __init__(self, host: str, port: int, db: int,
                 password: Optional[str] = None, timeout: float = 5.0,
                 retries: int = 10,
                 clock: Callable[[], float] = time.time) -> None:
        """Open the connection to Redis."""
        logger.debug('New Redis connection at %s, port %s', host, port)
        self.r = redis.Redis(host=host, port=port, db=db, password=password,
                             socket_timeout=timeout,
                             socket_connect_timeout=timeout,
                             decode_responses=True)
        self._retries = max(1, retries)
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    @staticmethod
    def key(guard: str, identity: Any) -> str:
        """Get the Redis key that holds the sessions of ``identity``."""
        return f'token_{guard}:{identity}'

    def _transact(self, key: str, mutate: Mutation) -> Any:
        """
        Apply ``mutate`` to the session set at ``key`` atomically.

        ``mutate`` receives the current sessions (``None`` if there is no
        set) and the current time. It returns the new sessions, whether they
        differ from the stored ones, and a result to hand back to the caller.
        An empty new set deletes the key.

        Raises
        ------
        :class:`.StoreUnavailable`
            Redis failed, or the key kept changing under us.

        """
        for attempt in range(1, self._retries + 1):
            try:
                with self.r.pipeline() as pipe:
                    pipe.watch(key)
                    current = serialize.decode(pipe.get(key))
                    now = self._now()
                    sessions, changed, result = mutate(current, now)
                    if changed:
                        pipe.multi()
                        if sessions:
                            pipe.set(key, serialize.encode(sessions),
                                     ex=self._expiry(sessions, now))
                        else:
                            pipe.delete(key)
                        pipe.execute()
                    return result
            except redis.exceptions.WatchError:
                logger.warning('Concurrent update of %s (attempt %i)',
                               key, attempt)
            except redis.exceptions.ConnectionError as e:
                logger.error('Session store connection failed: %s', e)
                raise StoreUnavailable(f'Connection failed: {e}') from e
            except redis.exceptions.RedisError as e:
                logger.error('Session store failed: %s', e)
                raise StoreUnavailable(f'Store failed: {e}') from e
        raise StoreUnavailable(f'Gave up on {key} after {self._retries} '
                               'concurrent updates')

    @staticmethod
    def _expiry(sessions: Sessions, now: int) -> int:
        latest = max(record.refresh_expires_at for record in sessions)
        return max(1, latest - now)

    def insert(self, guard: str, identity: Any, record: SessionRecord,
               limit: int) -> int:
        """
        Add a new session for ``identity``.

        Parameters
        ----------
        guard : str
        identity : Any
        record : :class:`.SessionRecord`
        limit : int
            Session limit for ``record.client_type``. ``-1`` is unlimited,
            ``0`` keeps only the new session, ``N > 0`` keeps at most ``N``
            sessions of that client type.

        Returns
        -------
        int
            Number of earlier sessions that were evicted or swept.

        """
        def _insert(current: Optional[Sessions],
                    now: int) -> Tuple[Sessions, bool, int]:
            if current is None:
                return [record], True, 0
            sessions = apply_limit(current, record.client_type, limit)
            sessions.append(record)
            sessions, _ = sweep_sessions(sessions, now)
            return sessions, True, len(current) + 1 - len(sessions)

        removed = self._transact(self.key(guard, identity), _insert)
        logger.debug('Inserted %s session for %s/%s; %i removed',
                     record.client_type, guard, identity, removed)
        return removed

    def sweep(self, guard: str, identity: Any) -> int:
        """
        Remove expired sessions of ``identity``.

        Refresh-expired sessions are removed. Sessions whose access token
        lapsed keep their refresh token but lose the access token.

        Returns
        -------
        int
            Number of sessions removed.

        """
        def _sweep(current: Optional[Sessions],
                   now: int) -> Tuple[Optional[Sessions], bool, int]:
            if current is None:
                return None, False, 0
            sessions, changed = sweep_sessions(current, now)
            return sessions, changed, len(current) - len(sessions)

        return self._transact(self.key(guard, identity), _sweep)

    def confirm_membership(self, guard: str, identity: Any, token: str,
                           kind: TokenKind) -> bool:
        """
        Confirm that ``token`` belongs to a live session of ``identity``.

        A matching session whose ``kind`` token lapsed does not count. If it
        was the refresh token that lapsed the session is removed; if only the
        access token lapsed the access token is cleared. Other sessions seen
        during the scan that are past their refresh expiry are removed too.

        Returns
        -------
        bool
            Always ``True``; failure is signalled by :class:`.NotFound`.

        Raises
        ------
        :class:`.NotFound`
            There is no session set, or no live session holds ``token``.

        """
        def _confirm(current: Optional[Sessions],
                     now: int) -> Tuple[Optional[Sessions], bool, bool]:
            if current is None:
                return None, False, False
            kept = []
            changed = False
            found = False
            for record in current:
                if not record.refresh_valid(now):
                    changed = True
                    continue
                if record.matches(token, kind):
                    if record.valid(kind, now):
                        found = True
                    else:
                        record = record.without_access()
                        changed = True
                kept.append(record)
            return kept, changed, found

        if not self._transact(self.key(guard, identity), _confirm):
            logger.debug('No live %s session for %s/%s',
                         TokenKind(kind).name, guard, identity)
            raise NotFound('No such session')
        return True

    def rotate_access(self, guard: str, identity: Any, refresh_token: str,
                      access_token: str, issued_at: int, ttl: int) -> None:
        """
        Replace the access token of the session holding ``refresh_token``.

        Raises
        ------
        :class:`.NotFound`
            No live session holds ``refresh_token``.

        """
        def _rotate(current: Optional[Sessions],
                    now: int) -> Tuple[Optional[Sessions], bool, bool]:
            if current is None:
                return None, False, False
            sessions, changed = sweep_sessions(current, now)
            for i, record in enumerate(sessions):
                if record.matches(refresh_token, TokenKind.REFRESH):
                    sessions[i] = record._replace(access_token=access_token,
                                                  access_issued_at=issued_at,
                                                  access_ttl=ttl)
                    return sessions, True, True
            return sessions, changed, False

        if not self._transact(self.key(guard, identity), _rotate):
            raise NotFound('No such session')

    def revoke_one(self, guard: str, identity: Any, access_token: str) -> int:
        """
        Remove the session whose access token is ``access_token``.

        Returns
        -------
        int
            Number of sessions removed; zero if there was nothing to remove.

        """
        def _revoke(current: Optional[Sessions],
                    now: int) -> Tuple[Optional[Sessions], bool, int]:
            if current is None:
                return None, False, 0
            kept = [record for record in current
                    if not record.matches(access_token, TokenKind.ACCESS)]
            return kept, len(kept) != len(current), len(current) - len(kept)

        removed = self._transact(self.key(guard, identity), _revoke)
        logger.debug('Revoked %i session(s) for %s/%s',
                     removed, guard, identity)
        return removed

    def revoke_all(self, guard: str, identity: Any) -> int:
        """
        Remove every session of ``identity``.

        The count and the removal happen in one transaction, so a login that
        races with this call is either counted and removed or left intact.

        Returns
        -------
        int
            Number of refresh-valid sessions removed; zero if there was no
            session set.

        """
        def _revoke_all(current: Optional[Sessions],
                        now: int) -> Tuple[Optional[Sessions], bool, int]:
            if current is None:
                return None, False, 0
            live = [record for record in current if record.refresh_valid(now)]
            return [], True, len(live)

        removed = self._transact(self.key(guard, identity), _revoke_all)
        logger.debug('Revoked all %i session(s) for %s/%s',
                     removed, guard, identity)
        return removed

    def sessions(self, guard: str, identity: Any) -> Sessions:
        """Get the refresh-valid sessions of ``identity``, oldest first."""
        try:
            raw = self.r.get(self.key(guard, identity))
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f'Failed to read: {e}') from e
        now = self._now()
        return [record for record in serialize.decode(raw) or []
                if record.refresh_valid(now)]


def get_session_store(config: Mapping[str, Any],
                      clock: Callable[[], float] = time.time) -> SessionStore:
    """Get a new session store from a Flask-style config mapping."""
    params = RedisConfig.from_mapping(config)
    return SessionStore(params.host, params.port, params.db,
                        password=params.password, timeout=params.timeout,
                        retries=params.retries, clock=clock)
