import asyncio
import logging
from typing import Optional
from sqlmodel.ext.asyncio.session import AsyncSession
from aeroclub_billing.app.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

PENDING_COMMIT_KEY = "pending_commit"


class SqlAlchemyUnitOfWork(UnitOfWork):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await wait_for_pending_commit(self.session)
        await self.rollback()

    @property
    def pending_commit(self) -> Optional[asyncio.Future]:
        # Kept on the session so the code that closes it can find it
        return self.session.info.get(PENDING_COMMIT_KEY)

    @pending_commit.setter
    def pending_commit(self, commit: Optional[asyncio.Future]):
        self.session.info[PENDING_COMMIT_KEY] = commit

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()


async def wait_for_pending_commit(session: AsyncSession) -> None:
    """Wait for a commit still running on the session before it is closed"""
    commit = session.info.pop(PENDING_COMMIT_KEY, None)
    if commit is None or commit.done():
        return

    logger.info("Waiting for an in-flight commit before closing the session")
    # Outcome is logged by whoever handed the commit over
    await asyncio.wait([commit])
