import pytest_asyncio
from datetime import date
from decimal import Decimal
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import src.domain  # noqa: F401  registers every table on SQLModel.metadata
from src.depends import get_session
from src.domain import (
    BillingEngine,
    Customer,
    Employee,
    PaymentFrequency,
    Subscription,
    SubscriptionGroup,
    SubscriptionInstance,
    SubscriptionInstancePost,
)


@pytest_asyncio.fixture(scope="function")
async def db_uri(tmp_path):
    """File-backed sqlite database, shared by every engine a test creates"""
    return f"sqlite+aiosqlite:///{tmp_path / 'billing_test.db'}"


@pytest_asyncio.fixture(scope="function")
async def engine(db_uri):
    """Create test database engine with a fresh schema"""
    engine = create_async_engine(db_uri, echo=False, future=True)

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
async def client(db_session):
    """Create test client with database session override"""
    from src.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    # Override the session dependency to use test session
    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session

    # Use ASGITransport for httpx AsyncClient
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def billing_data(db_session):
    """
    A customer with a salesperson, a grouped catalog and one virtualization
    instance billed at 5 CPUs since January
    """
    salesperson = Employee(name="Jane Seller", email="jane@example.com")
    group = SubscriptionGroup(name="Infrastructure", sort_order=1)
    db_session.add(salesperson)
    db_session.add(group)
    await db_session.flush()

    customer = Customer(
        name="Nordic Freight A/S",
        virtualization_id="NF-1042",
        cloud_tenant_id="tenant-nf",
        employee_id=salesperson.id,
    )
    cpu = Subscription(
        product=1001,
        name="Virtual CPU",
        billing_engine=BillingEngine.CPU_COUNT,
        payment_frequency=PaymentFrequency.MONTHLY,
        group_id=group.id,
        price=Decimal("45"),
    )
    db_session.add(customer)
    db_session.add(cpu)
    await db_session.flush()

    instance = SubscriptionInstance(
        subscription_id=cpu.id, customer_id=customer.id, name="Virtual CPUs"
    )
    db_session.add(instance)
    await db_session.flush()

    post = SubscriptionInstancePost(
        instance_id=instance.id,
        units=Decimal("5"),
        unit_price=Decimal("45"),
        start_date=date(2024, 1, 1),
    )
    db_session.add(post)
    await db_session.commit()

    return {
        "salesperson_id": salesperson.id,
        "group_id": group.id,
        "customer_id": customer.id,
        "subscription_id": cpu.id,
        "instance_id": instance.id,
        "post_id": post.id,
    }
