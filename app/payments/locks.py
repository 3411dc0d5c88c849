"""
Redis lock for background sweeps.

Payment and wallet writes never need this lock: transitions are
conditional UPDATEs and wallet mutations lock the wallet row. The lock only
keeps two beat-triggered sweeps from scanning the same table at once.

Usage:
    from payments.locks import DistributedLock
    from payments.exceptions import LockAcquisitionError

    try:
        with DistributedLock("sweep:wallet-reconcile", ttl=600, blocking=False):
            reconcile_everything()
    except LockAcquisitionError:
        pass  # another worker is on it
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis


class DistributedLock:
    """
    Redis SET NX lock with a TTL and an owner token.

    The token makes release safe: a worker whose lock expired cannot delete
    a lock another worker has since taken.

    Args:
        key: Lock name (stored as "lock:<key>")
        ttl: Seconds until Redis drops the lock on its own
        blocking: Wait up to ``timeout`` seconds instead of failing at once
        timeout: Maximum wait in blocking mode
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    POLL_INTERVAL = 0.05

    def __init__(
        self,
        key: str,
        ttl: int = 60,
        blocking: bool = False,
        timeout: float = 5.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Take the lock.

        Raises:
            LockAcquisitionError: If the lock is held elsewhere (after
                ``timeout`` seconds in blocking mode)
        """
        token = str(uuid.uuid4())
        deadline = time.monotonic() + (self.timeout if self.blocking else 0)

        while True:
            if self.redis.set(self.key, token, nx=True, ex=self.ttl):
                self._token = token
                return True
            if time.monotonic() >= deadline:
                raise LockAcquisitionError(
                    f"Lock '{self.key}' is already held",
                    details={"key": self.key, "blocking": self.blocking},
                )
            time.sleep(self.POLL_INTERVAL)

    def release(self) -> bool:
        """Release the lock if this instance still owns it."""
        if self._token is None:
            return False
        released = self.redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(released)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        self.release()
        return False


__all__ = ["DistributedLock"]
