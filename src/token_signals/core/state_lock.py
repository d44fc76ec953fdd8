"""State locking utilities guarding the in-memory caches."""

import asyncio
from contextlib import asynccontextmanager
import logging

logger = logging.getLogger(__name__)


class StateLock:
    """Named async mutex for a single piece of shared state."""

    def __init__(self, name: str):
        """Initialize state lock."""
        self.name = name
        self._lock = asyncio.Lock()
        self._lock_count = 0
        logger.debug(f"State lock '{name}' created")

    async def acquire(self) -> None:
        """Acquire the lock."""
        await self._lock.acquire()
        self._lock_count += 1
        logger.debug(f"State lock '{self.name}' acquired (count: {self._lock_count})")

    def release(self) -> None:
        """Release the lock."""
        if self._lock.locked():
            self._lock.release()
            self._lock_count -= 1
            logger.debug(f"State lock '{self.name}' released (count: {self._lock_count})")

    @asynccontextmanager
    async def locked(self):
        """Context manager for locked access."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    def is_locked(self) -> bool:
        return self._lock.locked()

    def locked_count(self) -> int:
        """Get current lock count."""
        return self._lock_count


class ReadWriteStateLock:
    """Async read/write lock for state where reads dominate.

    Any number of readers may hold the lock together; a writer holds it alone.
    Waiting writers block new readers so a busy read side cannot starve them.
    """

    def __init__(self, name: str):
        self.name = name
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0
        logger.debug(f"Read/write lock '{name}' created")

    @asynccontextmanager
    async def read_locked(self):
        """Shared access."""
        async with self._cond:
            while self._writer or self._writers_waiting:
                await self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write_locked(self):
        """Exclusive access."""
        async with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    await self._cond.wait()
            finally:
                self._writers_waiting -= 1
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def write_held(self) -> bool:
        return self._writer
