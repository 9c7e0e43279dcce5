import itertools
import pytest_asyncio
from datetime import date, datetime, timedelta
from decimal import Decimal
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from aeroclub_billing.depends import get_session
from aeroclub_billing.domain import Invoice, InvoiceStatus, MemberAccount


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create a throwaway file-backed SQLite database per test"""
    test_db_url = f"sqlite+aiosqlite:///{tmp_path / 'billing_test.db'}"

    engine = create_async_engine(test_db_url, echo=False, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new database session for each test"""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seed(session_factory):
    """Insert invoices and member accounts in their own committed session"""
    numbers = itertools.count(1)

    class Seeder:
        async def invoice(self, total, user_id="member_42", due_date=None, status=InvoiceStatus.PENDING):
            async with session_factory() as session:
                invoice = Invoice(
                    invoice_number=f"INV-{date.today().year}-{next(numbers):06d}",
                    user_id=user_id,
                    total_amount=Decimal(total),
                    due_date=due_date or date.today() + timedelta(days=14),
                    status=status,
                )
                session.add(invoice)
                await session.commit()
                await session.refresh(invoice)
                return invoice

        async def account(self, balance, user_id="member_42"):
            async with session_factory() as session:
                account = MemberAccount(
                    user_id=user_id,
                    credit_balance=Decimal(balance),
                    created_at=datetime.utcnow(),
                    updated_at=datetime.utcnow(),
                )
                session.add(account)
                await session.commit()
                await session.refresh(account)
                return account

    return Seeder()


@pytest_asyncio.fixture
async def client(db_session):
    """Create test client with database session override"""
    from aeroclub_billing.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
