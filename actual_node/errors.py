"""Error taxonomy for the Actual Budget node."""


class NodeError(Exception):
    """Base class for every error raised by the node."""


class CredentialError(NodeError):
    """The credential test request did not succeed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InitializationError(NodeError):
    """The vendor client could not be initialized. Fatal for the run."""


class OperationError(NodeError):
    """A single item's operation failed.

    Args:
        message: Human readable description
        item_index: Index of the input item the failure belongs to
    """

    def __init__(self, message: str, item_index: int | None = None):
        super().__init__(message)
        self.item_index = item_index

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.__class__.__name__


class ValidationError(OperationError):
    """A parameter was rejected before reaching the vendor client."""


class ShutdownWarning(Warning):
    """Releasing the vendor client failed. Logged, never raised."""
