"""Billing Period Calculation

Maps a payment frequency and a reference day to the period an invoice
covers and to the minimum number of days that must pass between two
invoices of the same instance.
"""

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Union
from dateutil.relativedelta import relativedelta
from src.domain.errors import ConfigurationError
from src.domain.subscription import PaymentFrequency


@dataclass(frozen=True)
class BillingPeriod:
    """
    Billing period with inclusive start and end days

    A boundary day is billable on both sides, so the number of days in the
    period is end - start + 1.
    """

    start: date
    end: date
    minimum_days_since_last_invoice: int

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


MINIMUM_DAYS_SINCE_LAST_INVOICE = {
    PaymentFrequency.MONTHLY: 28,
    PaymentFrequency.QUARTERLY: 88,
    PaymentFrequency.HALF_YEARLY: 120,
    PaymentFrequency.YEARLY: 340,
}


def _end_of_month(year: int, month: int) -> date:
    return date(year, month, monthrange(year, month)[1])


def _quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def compute_period(
    frequency: Union[PaymentFrequency, str], reference_date: date
) -> BillingPeriod:
    """
    Compute the billing period covering reference_date

    Args:
        frequency: Payment frequency (enum member or its value)
        reference_date: Day the period must cover, usually today

    Returns:
        BillingPeriod

    Raises:
        ConfigurationError: frequency is not a known payment frequency
    """
    try:
        frequency = PaymentFrequency(frequency)
    except ValueError:
        raise ConfigurationError(f"Unrecognized payment frequency: {frequency!r}")

    year = reference_date.year

    if frequency == PaymentFrequency.MONTHLY:
        start = reference_date.replace(day=1)
        end = _end_of_month(year, reference_date.month)
    elif frequency == PaymentFrequency.QUARTERLY:
        first_month = (_quarter_of(reference_date) - 1) * 3 + 1
        start = date(year, first_month, 1)
        end = _end_of_month(year, first_month + 2)
    elif frequency == PaymentFrequency.HALF_YEARLY:
        # Q1/Q2 and Q3/Q4 meet at Jun 30 / Jul 1
        if _quarter_of(reference_date) <= 2:
            start, end = date(year, 1, 1), date(year, 6, 30)
        else:
            start, end = date(year, 7, 1), date(year, 12, 31)
    else:
        # Rolling window [reference, reference + 1 year), stored with inclusive end
        start = reference_date
        end = reference_date + relativedelta(years=1) - timedelta(days=1)

    return BillingPeriod(
        start=start,
        end=end,
        minimum_days_since_last_invoice=MINIMUM_DAYS_SINCE_LAST_INVOICE[frequency],
    )
