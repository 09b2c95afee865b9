class HolderScanError(Exception):
    pass


class LedgerInconsistency(HolderScanError):
    """Ledger cannot be trusted: negative balance or malformed event data."""

    def __init__(
        self,
        message: str,
        *,
        address: str | None = None,
        balance_units: int | None = None,
        event_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.address = address
        self.balance_units = balance_units
        self.event_index = event_index
