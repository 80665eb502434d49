class InventoryError(Exception):
    """Base class for every error raised by the inventory service."""


class ValidationFailed(InventoryError):
    """Local validation failed; nothing was sent to the data service."""


class OutOfStock(ValidationFailed):
    pass


class StockLimitReached(ValidationFailed):
    pass


class InvalidCart(ValidationFailed):
    pass


class RemoteOperationError(InventoryError):
    """The data service rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RecordNotFound(RemoteOperationError):
    pass


class PartialWriteError(RemoteOperationError):
    """A per-row write loop stopped part way; `result` says how far it got."""

    def __init__(self, message: str, result):
        super().__init__(message)
        self.result = result
