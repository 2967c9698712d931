"""Supply Sentinel exception hierarchy."""


class SentinelError(Exception):
    """Base exception for all Sentinel errors."""

    def __init__(self, message: str = "", code: str = "sentinel_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class AnomalyNotFoundError(SentinelError):
    """Raised when an anomaly cannot be found in the database."""

    def __init__(self, message: str = "Anomaly not found"):
        super().__init__(message, code="not_found")


class InvalidStateError(SentinelError):
    """Raised when a workflow transition is not allowed from the current status."""

    def __init__(self, message: str = "Transition not allowed from current status"):
        super().__init__(message, code="invalid_state")


class InvalidRequestError(SentinelError):
    """Raised when a scan or workflow request is missing or has invalid input."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, code="validation_error")


class DataStoreUnavailableError(SentinelError):
    """Raised when a detection pass cannot use the data store at all."""

    def __init__(self, message: str = "Data store unavailable"):
        super().__init__(message, code="store_unavailable")
