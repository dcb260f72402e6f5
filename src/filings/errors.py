"""Tax filing errors."""

from collections.abc import Iterable


class TaxFilingNotFound(LookupError):
    """No tax filing exists with the given id."""

    def __init__(self, filing_id: str):
        self.filing_id = filing_id
        super().__init__(f"Tax filing '{filing_id}' not found")


class InvalidFilingUpdate(ValueError):
    """A general update named fields it may not change."""

    def __init__(self, fields: Iterable[str]):
        self.fields = sorted(fields)
        super().__init__(f"Fields cannot be updated directly: {', '.join(self.fields)}")
