"""NotifyReconciliationOutcome Use Case

Sends the per-customer reconciliation emails: automatic changes to the
customer's salesperson, errors to the operations mailbox.
"""

import html
import logging
from typing import List, Optional
from libs.result import Result, Return, Error
from src.app.services.email_service import EmailService
from .dtos import CustomerReconciliationLog, NotificationResultDTO

logger = logging.getLogger(__name__)

CHANGES_SUBJECT = "[Billing Alert]: {customer} - Automatic changes made"
ERRORS_SUBJECT = "[Billing Alert]: {customer} - Errors found while reconciling subscriptions"


def render_lines(lines: List[str]) -> str:
    return "<br>".join(html.escape(line) for line in lines)


class NotifyReconciliationOutcome:
    """
    Use Case: Notify about one customer's reconciliation outcome

    Business Rules:
    1. Change lines go to the salesperson in one email
    2. No salesperson on file turns into an error line for operations
    3. Error lines go to the operations address in one email
    4. Email failures are logged, never retried and never fail the run
    """

    def __init__(self, email_service: EmailService, operations_email: Optional[str]):
        self.email_service = email_service
        self.operations_email = operations_email

    async def execute(
        self,
        log: CustomerReconciliationLog,
        salesperson_email: Optional[str],
    ) -> Result[NotificationResultDTO]:
        """
        Execute notification for one customer

        Args:
            log: The customer's reconciliation log (may gain a fallback error line)
            salesperson_email: Address of the customer's salesperson, if any

        Returns:
            Result[NotificationResultDTO]: Which emails were handed to the email service
        """
        result = NotificationResultDTO(customer_id=log.customer_id)

        try:
            if log.changes:
                if salesperson_email:
                    result.change_email_sent = await self._send(
                        salesperson_email,
                        CHANGES_SUBJECT.format(customer=log.customer_name),
                        log.changes,
                    )
                else:
                    log.add_error(
                        f"Customer {log.customer_name} has no salesperson with an email "
                        f"address; {len(log.changes)} automatic change(s) were not reported."
                    )

            if log.errors:
                if self.operations_email:
                    result.error_email_sent = await self._send(
                        self.operations_email,
                        ERRORS_SUBJECT.format(customer=log.customer_name),
                        log.errors,
                    )
                else:
                    logger.warning(
                        f"No operations address configured; dropping {len(log.errors)} "
                        f"error line(s) for customer {log.customer_id}"
                    )

            return Return.ok(result)

        except Exception as e:
            logger.error(f"Notification for customer {log.customer_id} failed: {e}")
            return Return.err(
                Error(
                    code="NOTIFICATION_FAILED",
                    message=f"Failed to notify about customer {log.customer_id}",
                    reason=str(e),
                )
            )

    async def _send(self, to_address: str, subject: str, lines: List[str]) -> bool:
        try:
            sent = await self.email_service.send(to_address, subject, render_lines(lines))
        except Exception as e:
            logger.error(f"Email '{subject}' to {to_address} failed: {e}")
            return False
        if not sent:
            logger.warning(f"Email '{subject}' to {to_address} was not delivered")
        return bool(sent)
