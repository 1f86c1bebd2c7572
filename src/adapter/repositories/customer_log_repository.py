"""SQLAlchemy Customer Log Repository Implementation"""

from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.customer_log_repository import CustomerLogRepository
from src.domain.customer_log import CustomerLog


class SqlAlchemyCustomerLogRepository(CustomerLogRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, log: CustomerLog) -> CustomerLog:
        self.session.add(log)
        await self.session.flush()
        await self.session.refresh(log)
        return log
