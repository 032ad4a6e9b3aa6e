"""Per-template-name mutual exclusion for lifecycle operations."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

logger = logging.getLogger(__name__)


class KeyedLock:
    """Map of template name -> asyncio.Lock, plus an exclusive gate over all names.

    Operations on the same name run one at a time; different names never wait
    on each other. ``hold_all`` waits until no name is held and keeps new
    holders out until it is released. Locks are created on first use and kept
    for the lifetime of the process.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._gate: Optional[asyncio.Condition] = None
        self._active = 0
        self._exclusive = False

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _condition(self) -> asyncio.Condition:
        # Created lazily so it belongs to the loop that first uses it
        if self._gate is None:
            self._gate = asyncio.Condition()
        return self._gate

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @property
    def exclusive(self) -> bool:
        return self._exclusive

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        gate = self._condition()
        async with gate:
            if self._exclusive:
                logger.debug(f"Waiting for cleanup to finish before operating on template {key}")
            await gate.wait_for(lambda: not self._exclusive)
            self._active += 1
        try:
            lock = self._lock_for(key)
            if lock.locked():
                logger.debug(f"Waiting for in-flight operation on template {key}")
            async with lock:
                yield
        finally:
            async with gate:
                self._active -= 1
                gate.notify_all()

    @asynccontextmanager
    async def hold_all(self) -> AsyncIterator[None]:
        """Wait for every in-flight holder to finish and block new ones until released."""
        gate = self._condition()
        async with gate:
            await gate.wait_for(lambda: not self._exclusive)
            self._exclusive = True
            try:
                if self._active:
                    logger.debug(f"Waiting for {self._active} in-flight operation(s) to finish")
                await gate.wait_for(lambda: self._active == 0)
            except BaseException:
                self._exclusive = False
                gate.notify_all()
                raise
        try:
            yield
        finally:
            async with gate:
                self._exclusive = False
                gate.notify_all()
