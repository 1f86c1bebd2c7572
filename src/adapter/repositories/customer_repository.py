"""SQLAlchemy Customer Repository Implementation"""

from typing import Optional, List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.customer_repository import CustomerRepository
from src.domain.customer import Customer
from src.domain.employee import Employee


class SqlAlchemyCustomerRepository(CustomerRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        statement = select(Customer).where(Customer.id == customer_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def list_all(self) -> List[Customer]:
        statement = select(Customer).order_by(Customer.id)
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_salesperson(self, customer: Customer) -> Optional[Employee]:
        if customer.employee_id is None:
            return None
        statement = select(Employee).where(Employee.id == customer.employee_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_employee_by_name(self, name: str) -> Optional[Employee]:
        statement = select(Employee).where(Employee.name == name).order_by(Employee.id).limit(1)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()
