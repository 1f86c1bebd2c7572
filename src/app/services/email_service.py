"""Email Service Interface

Defines the contract for the reconciliation notification channel.
"""

from abc import ABC, abstractmethod


class EmailService(ABC):
    """
    Abstract email sink

    Sending is fire-and-forget: implementations log delivery failures and
    never raise them to the caller, and nothing is retried.
    """

    @abstractmethod
    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        """
        Send an HTML email

        Args:
            to_address: Recipient address
            subject: Subject line
            html_body: HTML body

        Returns:
            True if the email was handed off, False otherwise
        """
        pass
