"""Customer Log Repository Interface"""

from abc import ABC, abstractmethod
from src.domain.customer_log import CustomerLog


class CustomerLogRepository(ABC):
    @abstractmethod
    async def create(self, log: CustomerLog) -> CustomerLog:
        pass
