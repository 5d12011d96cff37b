"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database. Environment defaults are
set before the application package is imported so the cached settings pick
them up.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
os.environ.setdefault("DATABASE_URL_MASTER", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ["ENVIRONMENT"] = "development"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PROMETHEUS_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers all tables on Base.metadata
from app.db.base import Base, make_session_factory
from app.models.credit import CreditBalance, CreditTransaction, TransactionType
from app.models.payment import PaymentMethod, PaymentTransaction, PaymentStatus
from app.models.user import User, UserRole
from app.schemas.user import CurrentUser
from app.services.payment.methods import seed_default_methods


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session = make_session_factory(engine)()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def make_user(db):
    """
    Factory for users with a balance backed by a matching bonus entry.

    Returns the caller identity rather than the ORM row, so tests can keep
    using it after the services roll the session back.
    """
    async def _make_user(credits: int = 50, role: UserRole = UserRole.USER, email: str = None) -> CurrentUser:
        user = User(
            email=email or f"user-{uuid.uuid4().hex[:8]}@codegen.dev",
            hashed_password="not-a-real-hash",
            full_name="Test User",
            role=role,
            referral_code=uuid.uuid4().hex[:8].upper(),
        )
        db.add(user)
        await db.flush()

        db.add(CreditBalance(user_id=user.id, amount=credits))
        if credits:
            db.add(CreditTransaction(
                user_id=user.id,
                amount=credits,
                transaction_type=TransactionType.BONUS,
                description="Test credits",
            ))
        await db.commit()
        return CurrentUser(id=user.id, email=user.email, role=role, full_name=user.full_name)

    return _make_user


@pytest.fixture
def make_admin(make_user):
    async def _make_admin() -> CurrentUser:
        return await make_user(credits=0, role=UserRole.ADMIN)

    return _make_admin


@pytest_asyncio.fixture
async def payment_methods(db):
    """Seeded payment methods as a name -> id mapping."""
    await seed_default_methods(db)
    await db.commit()
    rows = (await db.execute(select(PaymentMethod.name, PaymentMethod.id))).all()
    return {name: method_id for name, method_id in rows}


@pytest.fixture
def enable_method(db):
    async def _enable(method_id: str) -> None:
        method = (await db.execute(select(PaymentMethod).where(PaymentMethod.id == method_id))).scalar_one()
        method.is_enabled = True
        await db.commit()

    return _enable


@pytest.fixture
def balance_of(db):
    async def _balance_of(user_id: str) -> int:
        return (await db.execute(
            select(CreditBalance.amount).where(CreditBalance.user_id == user_id)
        )).scalar_one()

    return _balance_of


@pytest.fixture
def processing_payment(db):
    """Insert an automated payment stuck in processing."""
    async def _processing_payment(user_id: str, method_id: str, amount: str = "75.00") -> str:
        payment = PaymentTransaction(
            user_id=user_id,
            payment_method_id=method_id,
            amount=Decimal(amount),
            currency="BDT",
            status=PaymentStatus.PROCESSING,
            credits_awarded=0,
        )
        db.add(payment)
        await db.commit()
        return payment.id

    return _processing_payment
