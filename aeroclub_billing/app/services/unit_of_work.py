"""Unit of Work Interface

Groups every insert and update of one business operation into a single
atomic commit.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional


class UnitOfWork(ABC):
    """
    Transaction boundary shared by the repositories of one operation

    Repositories only flush; nothing is durable until commit() succeeds.
    Leaving the context without committing rolls everything back.

    pending_commit holds a commit that outlived the caller waiting on it
    (a timed-out commit). Whoever owns the session must wait for it before
    closing the session.
    """

    pending_commit: Optional[asyncio.Future] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass
