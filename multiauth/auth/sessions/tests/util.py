"""Test doubles for the session store."""

from typing import Any, Callable, Dict, List, Optional

from redis.exceptions import WatchError


class Clock(object):
    """A clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeRedis(object):
    """
    In-memory stand-in for :class:`redis.Redis`.

    Supports the handful of commands used by the session store, including
    optimistic transactions: every write bumps a per-key version, and a
    pipeline's ``execute`` raises :class:`WatchError` if a watched key's
    version moved since ``watch``.

    Callables appended to :attr:`interference` are run, one per watched
    read, right after the read. Use them to simulate a concurrent writer.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, Optional[int]] = {}
        self.versions: Dict[str, int] = {}
        self.interference: List[Callable[['FakeRedis'], None]] = []

    def _bump(self, key: str) -> None:
        self.versions[key] = self.versions.get(key, 0) + 1

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.data[key] = value
        self.expiry[key] = ex
        self._bump(key)
        return True

    def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.expiry.pop(key, None)
                self._bump(key)
                deleted += 1
        return deleted

    def pipeline(self) -> 'FakePipeline':
        return FakePipeline(self)


class FakePipeline(object):
    """Pipeline returned by :meth:`FakeRedis.pipeline`."""

    def __init__(self, redis: FakeRedis) -> None:
        self.redis = redis
        self.watched: Dict[str, int] = {}
        self.commands: Optional[List[tuple]] = None

    def __enter__(self) -> 'FakePipeline':
        return self

    def __exit__(self, *exc: Any) -> None:
        self.reset()

    def reset(self) -> None:
        self.watched = {}
        self.commands = None

    def watch(self, *keys: str) -> None:
        for key in keys:
            self.watched[key] = self.redis.versions.get(key, 0)

    def get(self, key: str) -> Optional[str]:
        value = self.redis.get(key)
        if self.redis.interference:
            self.redis.interference.pop(0)(self.redis)
        return value

    def multi(self) -> None:
        self.commands = []

    def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        self.commands.append(('set', key, value, ex))

    def delete(self, key: str) -> None:
        self.commands.append(('delete', key))

    def execute(self) -> List[Any]:
        for key, version in self.watched.items():
            if self.redis.versions.get(key, 0) != version:
                self.reset()
                raise WatchError('Watched variable changed.')
        results = []
        for command in self.commands or []:
            if command[0] == 'set':
                results.append(self.redis.set(command[1], command[2],
                                              ex=command[3]))
            else:
                results.append(self.redis.delete(command[1]))
        self.reset()
        return results
