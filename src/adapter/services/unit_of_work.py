from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.services.unit_of_work import UnitOfWork
from src.domain.errors import LedgerWriteConflict


class SqlAlchemyUnitOfWork(UnitOfWork):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.rollback()

    async def commit(self):
        try:
            await self.session.commit()
        except (IntegrityError, OperationalError) as e:
            await self.session.rollback()
            raise LedgerWriteConflict(f"Commit rejected by the database: {e.orig}") from e

    async def rollback(self):
        await self.session.rollback()
