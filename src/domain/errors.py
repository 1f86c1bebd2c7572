"""Billing Domain Errors

Every failure raised inside the reconciliation engine derives from
BillingError. None of them is fatal to a whole run: callers isolate the
customer, instance or resource that failed and report it.
"""


class BillingError(Exception):
    """Base class for reconciliation and invoicing failures"""

    code = "BILLING_ERROR"


class SourceUnavailable(BillingError):
    """A usage source could not deliver quantities for one customer"""

    code = "SOURCE_UNAVAILABLE"


class SchemaMismatch(SourceUnavailable):
    """A usage source answered with a payload that does not match its schema"""

    code = "SCHEMA_MISMATCH"


class MappingNotFound(BillingError):
    """External usage has no matching subscription or subscription instance"""

    code = "MAPPING_NOT_FOUND"


class LedgerWriteConflict(BillingError):
    """A supersede/close transaction on the ledger could not be applied"""

    code = "LEDGER_WRITE_CONFLICT"


class LedgerStateError(BillingError):
    """The requested ledger mutation contradicts the instance's post history"""

    code = "LEDGER_STATE_ERROR"


class ConfigurationError(BillingError):
    """Unrecognized payment frequency, missing pricing or similar setup error"""

    code = "CONFIGURATION_ERROR"
