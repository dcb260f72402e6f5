"""Tax filing tracking: per-client, per-year records and their status lifecycle."""

from src.filings.errors import InvalidFilingUpdate, TaxFilingNotFound
from src.filings.service import (
    FilingMetrics,
    create_tax_filing,
    delete_tax_filing,
    get_tax_filing,
    get_tax_filing_metrics,
    get_tax_filings,
    update_tax_filing,
    update_tax_filing_status,
)
from src.filings.state_machine import (
    MILESTONE_FIELDS,
    FilingStateMachine,
    create_state_machine,
)

__all__ = [
    # Service
    "FilingMetrics",
    "create_tax_filing",
    "delete_tax_filing",
    "get_tax_filing",
    "get_tax_filing_metrics",
    "get_tax_filings",
    "update_tax_filing",
    "update_tax_filing_status",
    # State machine
    "FilingStateMachine",
    "MILESTONE_FIELDS",
    "create_state_machine",
    # Errors
    "InvalidFilingUpdate",
    "TaxFilingNotFound",
]
