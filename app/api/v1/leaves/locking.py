"""
Per-department serialization of leave approvals.

The conflict check and the status update must not interleave with another
approval in the same department. On PostgreSQL a transaction-scoped advisory
lock covers every process; an asyncio lock per department also serializes
approvals within this process, which is all single-writer backends such as
SQLite need. The advisory lock is released when the caller commits or rolls
back, so callers must end the transaction inside the ``async with`` block.
"""

import asyncio
import hashlib
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# asyncio locks are bound to the loop they are first awaited on.
_local_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def advisory_lock_key(department: str) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.sha256(f"leave-approval:{department}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def _local_lock(department: str) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    locks = _local_locks.setdefault(loop, {})
    lock = locks.get(department)
    if lock is None:
        lock = locks[department] = asyncio.Lock()
    return lock


@asynccontextmanager
async def department_lock(db: AsyncSession, department: str) -> AsyncIterator[None]:
    async with _local_lock(department):
        if db.get_bind().dialect.name == "postgresql":
            await db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": advisory_lock_key(department)},
            )
        logger.debug("Acquired approval lock for department %s", department)
        yield
