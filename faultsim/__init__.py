"""faultsim: fault injection and retry harness for storefront service calls."""

__version__ = "0.1.0"

from .cart import Cart, CartItem, CartStore, InMemoryCache, RedisCache
from .errors import GatewayTimeoutError, StorageUnavailableError
from .resilience import DelayInjector, FaultConfig, FaultInjector, RetryExecutor

__all__ = [
    "Cart",
    "CartItem",
    "CartStore",
    "InMemoryCache",
    "RedisCache",
    "FaultConfig",
    "FaultInjector",
    "RetryExecutor",
    "DelayInjector",
    "StorageUnavailableError",
    "GatewayTimeoutError",
]
