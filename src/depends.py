from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables(target_engine=None):
    """Create missing billing tables (development and sqlite deployments)"""
    import src.domain  # noqa: F401  registers every table on SQLModel.metadata

    async with (target_engine or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
