"""Customer Repository Interface

Defines the contract for customer and employee lookups.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from src.domain.customer import Customer
from src.domain.employee import Employee


class CustomerRepository(ABC):
    """
    Repository interface for Customer persistence

    Customers are maintained elsewhere; reconciliation only reads them.
    """

    @abstractmethod
    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        pass

    @abstractmethod
    async def list_all(self) -> List[Customer]:
        """
        Retrieve all customers ordered by id

        Used by the reconciliation worker to process customers one by one.
        """
        pass

    @abstractmethod
    async def get_salesperson(self, customer: Customer) -> Optional[Employee]:
        """
        Retrieve the employee responsible for the customer

        Returns:
            Employee if the customer has a salesperson on file, None otherwise
        """
        pass

    @abstractmethod
    async def get_employee_by_name(self, name: str) -> Optional[Employee]:
        """
        Retrieve an employee by the full name used in upstream change history

        Returns:
            First matching Employee, None if nobody has that name
        """
        pass
