"""Ephemeral keyed store used by every tracking component.

Location cache, rate-limit windows, geofence state, speed buffers and the
trip-progress cache all live here, each under its own key prefix. Two
backends are provided: Redis for deployments and an in-process store for
tests and single-worker development. Both raise DependencyUnavailableError
when the backend cannot be reached; callers decide whether to fail open.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import redis

from src.transport_bc.shared.domain.errors import DependencyUnavailableError
from src.transport_bc.shared.domain.value_objects.clock import Clock

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Expiring key-value cache with the few atomic operations the core needs."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Store value only when the key does not exist. Returns True if stored."""
        pass

    @abstractmethod
    def swap_unless(
        self, key: str, value: str, ttl_seconds: int, keep: Sequence[str] = ()
    ) -> Optional[str]:
        """Replace the value unless the current one is listed in keep.

        A kept value only has its TTL refreshed. Returns the previous value
        either way; the read and the write are one atomic step.
        """
        pass

    @abstractmethod
    def delete(self, *keys: str) -> int:
        pass

    @abstractmethod
    def scan_prefix(self, prefix: str) -> List[str]:
        """Return all live keys starting with prefix."""
        pass

    @abstractmethod
    def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        """Increment a counter; the TTL is applied when the counter is created."""
        pass

    @abstractmethod
    def window_add(
        self,
        key: str,
        member: str,
        score: float,
        min_score: float,
        ttl_seconds: int,
    ) -> Tuple[int, Optional[float]]:
        """Prune scores <= min_score, add member, refresh expiry.

        Returns the number of members after the add and the oldest
        surviving score.
        """
        pass

    @abstractmethod
    def window_remove(self, key: str, member: str) -> None:
        pass

    @abstractmethod
    def push_bounded(self, key: str, value: str, max_length: int, ttl_seconds: int) -> int:
        """Append to a list keeping only the newest max_length entries."""
        pass

    @abstractmethod
    def get_list(self, key: str) -> List[str]:
        pass

    @abstractmethod
    def ping(self) -> bool:
        pass


class RedisKeyValueStore(KeyValueStore):
    """Redis implementation.

    Multi-step operations run in MULTI/EXEC pipelines or Lua scripts.
    """

    # KEYS[1] key, ARGV[1] value, ARGV[2] ttl, ARGV[3..] values to keep
    SWAP_UNLESS_SCRIPT = """
local previous = redis.call("GET", KEYS[1])
for i = 3, #ARGV do
    if previous == ARGV[i] then
        redis.call("EXPIRE", KEYS[1], ARGV[2])
        return previous
    end
end
redis.call("SET", KEYS[1], ARGV[1], "EX", ARGV[2])
return previous
"""

    def __init__(self, client: redis.Redis):
        self.client = client
        self._swap_unless = client.register_script(self.SWAP_UNLESS_SCRIPT)

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except redis.RedisError as e:
            raise DependencyUnavailableError(f"Redis {operation} failed: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._guard("GET"):
            return self.client.get(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._guard("SETEX"):
            self.client.set(key, value, ex=ttl_seconds)

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._guard("SET NX"):
            return bool(self.client.set(key, value, ex=ttl_seconds, nx=True))

    def swap_unless(
        self, key: str, value: str, ttl_seconds: int, keep: Sequence[str] = ()
    ) -> Optional[str]:
        with self._guard("swap script"):
            return self._swap_unless(keys=[key], args=[value, ttl_seconds, *keep])

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        with self._guard("DEL"):
            return self.client.delete(*keys)

    def scan_prefix(self, prefix: str) -> List[str]:
        with self._guard("SCAN"):
            return list(self.client.scan_iter(match=f"{prefix}*", count=500))

    def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        with self._guard("INCR"):
            count = self.client.incr(key)
            if count == 1 and ttl_seconds:
                self.client.expire(key, ttl_seconds)
            return count

    def window_add(
        self,
        key: str,
        member: str,
        score: float,
        min_score: float,
        ttl_seconds: int,
    ) -> Tuple[int, Optional[float]]:
        with self._guard("window"):
            pipe = self.client.pipeline(transaction=True)
            pipe.zremrangebyscore(key, "-inf", min_score)
            pipe.zadd(key, {member: score})
            pipe.zcard(key)
            pipe.zrange(key, 0, 0, withscores=True)
            pipe.expire(key, ttl_seconds)
            _, _, count, oldest, _ = pipe.execute()
            oldest_score = oldest[0][1] if oldest else None
            return count, oldest_score

    def window_remove(self, key: str, member: str) -> None:
        with self._guard("ZREM"):
            self.client.zrem(key, member)

    def push_bounded(self, key: str, value: str, max_length: int, ttl_seconds: int) -> int:
        with self._guard("RPUSH"):
            pipe = self.client.pipeline(transaction=True)
            pipe.rpush(key, value)
            pipe.ltrim(key, -max_length, -1)
            pipe.llen(key)
            pipe.expire(key, ttl_seconds)
            _, _, length, _ = pipe.execute()
            return length

    def get_list(self, key: str) -> List[str]:
        with self._guard("LRANGE"):
            return self.client.lrange(key, 0, -1)

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float] = None
    kind: str = field(default="string")


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store with TTL semantics driven by an injectable clock.

    A single lock makes every operation atomic, which matches the guarantees
    the Redis backend gets from single commands and MULTI pipelines.
    """

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._data: Dict[str, _Entry] = {}
        self._lock = threading.RLock()
        self.available = True

    def _check_available(self) -> None:
        if not self.available:
            raise DependencyUnavailableError("In-memory store marked unavailable")

    def _live(self, key: str) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return self._clock() + ttl_seconds if ttl_seconds else None

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            self._check_available()
            entry = self._live(key)
            if entry is None or entry.kind != "string":
                return None
            return entry.value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._check_available()
            self._data[key] = _Entry(value, self._expiry(ttl_seconds))

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._lock:
            self._check_available()
            if self._live(key) is not None:
                return False
            self._data[key] = _Entry(value, self._expiry(ttl_seconds))
            return True

    def swap_unless(
        self, key: str, value: str, ttl_seconds: int, keep: Sequence[str] = ()
    ) -> Optional[str]:
        with self._lock:
            self._check_available()
            entry = self._live(key)
            previous = entry.value if entry is not None and entry.kind == "string" else None
            if previous is not None and previous in keep:
                entry.expires_at = self._expiry(ttl_seconds)
            else:
                self._data[key] = _Entry(value, self._expiry(ttl_seconds))
            return previous

    def delete(self, *keys: str) -> int:
        with self._lock:
            self._check_available()
            removed = 0
            for key in keys:
                if self._live(key) is not None:
                    del self._data[key]
                    removed += 1
            return removed

    def scan_prefix(self, prefix: str) -> List[str]:
        with self._lock:
            self._check_available()
            return [key for key in list(self._data) if key.startswith(prefix) and self._live(key) is not None]

    def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        with self._lock:
            self._check_available()
            entry = self._live(key)
            if entry is None:
                entry = _Entry("0", self._expiry(ttl_seconds))
                self._data[key] = entry
            entry.value = str(int(entry.value) + 1)
            return int(entry.value)

    def window_add(
        self,
        key: str,
        member: str,
        score: float,
        min_score: float,
        ttl_seconds: int,
    ) -> Tuple[int, Optional[float]]:
        with self._lock:
            self._check_available()
            entry = self._live(key)
            members: Dict[str, float] = entry.value if entry is not None and entry.kind == "zset" else {}
            members = {m: s for m, s in members.items() if s > min_score}
            members[member] = score
            self._data[key] = _Entry(members, self._expiry(ttl_seconds), kind="zset")
            return len(members), min(members.values())

    def window_remove(self, key: str, member: str) -> None:
        with self._lock:
            self._check_available()
            entry = self._live(key)
            if entry is not None and entry.kind == "zset":
                entry.value.pop(member, None)

    def push_bounded(self, key: str, value: str, max_length: int, ttl_seconds: int) -> int:
        with self._lock:
            self._check_available()
            entry = self._live(key)
            items: List[str] = entry.value if entry is not None and entry.kind == "list" else []
            items = (items + [value])[-max_length:]
            self._data[key] = _Entry(items, self._expiry(ttl_seconds), kind="list")
            return len(items)

    def get_list(self, key: str) -> List[str]:
        with self._lock:
            self._check_available()
            entry = self._live(key)
            if entry is None or entry.kind != "list":
                return []
            return list(entry.value)

    def ping(self) -> bool:
        return self.available
