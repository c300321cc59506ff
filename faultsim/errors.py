"""Error taxonomy for the fault-simulation layer.

Synthetic faults and real backend faults of the same category share a class,
so nothing downstream can tell them apart. Caller-facing errors carry a
gRPC-style status code for the next layer up.
"""

from enum import IntEnum
from typing import Optional


class StatusCode(IntEnum):
    """Subset of gRPC status codes surfaced by this layer."""

    DEADLINE_EXCEEDED = 4
    UNAVAILABLE = 14
    DATA_LOSS = 15


class FaultsimError(Exception):
    """Base class for errors raised by faultsim."""

    status: StatusCode = StatusCode.UNAVAILABLE
    retryable: bool = True


class TransientStorageError(FaultsimError):
    """Storage failure that should be retried."""

    pass


class StorageTimeoutError(TransientStorageError):
    """Storage call timed out."""

    pass


class StorageConnectionError(TransientStorageError):
    """Connection to storage was dropped or reset."""

    pass


class PoolExhaustedError(TransientStorageError):
    """No free connection in the storage connection pool."""

    pass


class StorageUnavailableError(FaultsimError):
    """Raised when a storage operation fails after all retries."""

    def __init__(self, operation_name: str, attempts: int, last_error: Optional[str] = None):
        super().__init__(
            f"Can't access cart storage after {attempts} attempts "
            f"({operation_name}). Last error: {last_error}"
        )
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error


class CartDataError(FaultsimError, ValueError):
    """Stored cart payload could not be decoded. Never retried."""

    status = StatusCode.DATA_LOSS
    retryable = False

    def __init__(self, message: str = "", key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class GatewayTimeoutError(FaultsimError):
    """A single-shot delayed call timed out."""

    def __init__(self, operation_name: str, delay_ms: int = 0):
        super().__init__(f"{operation_name} gateway timeout after {delay_ms}ms")
        self.operation_name = operation_name
        self.delay_ms = delay_ms


class DeadlineExceededError(FaultsimError):
    """The caller's deadline expired before the operation finished."""

    status = StatusCode.DEADLINE_EXCEEDED

    def __init__(self, operation_name: str, timeout: float = 0.0):
        super().__init__(f"{operation_name} timed out after {timeout}s")
        self.operation_name = operation_name
        self.timeout = timeout
