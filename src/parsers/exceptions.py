class SourceUnavailable(Exception):
    """Data source returned a non-success status, timed out, or was unreachable."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
