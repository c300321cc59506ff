"""Shopping carts kept in an external key-value cache.

Every operation is a read/modify/write against the cache, run through the
RetryExecutor so injected and real storage faults are retried the same way.
Concurrent add_item calls for one user race; the last write wins.
"""

import logging
from typing import Optional

from ..config import Settings
from ..resilience.faults import FaultConfig
from ..resilience.retry import RetryExecutor
from ..resilience.timeout import with_deadline
from .cache import CacheBackend
from .models import Cart, CartItem, decode_cart, encode_cart

logger = logging.getLogger(__name__)


class CartStore:
    """Per-user carts with retried storage access.

    Usage:
        store = CartStore(InMemoryCache(), RetryExecutor.from_config(config))
        await store.add_item("user-1", "OLJCESPC7Z", 2)
        cart = await store.get_cart("user-1")
    """

    def __init__(
        self,
        cache: CacheBackend,
        executor: Optional[RetryExecutor] = None,
        operation_timeout: Optional[float] = None,
    ):
        """Initialize cart store.

        Args:
            cache: Byte-oriented key-value cache
            executor: Retry executor (defaults to one with injection disabled)
            operation_timeout: Deadline in seconds for each operation, retries included
        """
        self._cache = cache
        self._executor = executor or RetryExecutor()
        self._operation_timeout = operation_timeout

    @classmethod
    def from_settings(cls, cache: CacheBackend, settings: Settings) -> "CartStore":
        config = FaultConfig.from_settings(settings)
        logger.info(
            f"CartStore initialized - Connection issues: {config.enabled}, "
            f"Failure rate: {config.failure_rate}, Max retries: {config.max_retries}, "
            f"Base delay: {config.base_delay_ms}ms"
        )
        return cls(
            cache,
            RetryExecutor.from_config(config),
            operation_timeout=settings.cart_operation_timeout_seconds,
        )

    async def add_item(self, user_id: str, product_id: str, quantity: int) -> None:
        """Add a product to the user's cart, summing quantities for repeats.

        Raises:
            ValueError: If product_id or quantity is invalid
            StorageUnavailableError: If storage stays unreachable
            CartDataError: If the stored cart is corrupt
        """
        logger.info(f"add_item called with user_id={user_id}, product_id={product_id}, quantity={quantity}")
        item = CartItem(product_id=product_id, quantity=quantity)

        async def work() -> None:
            cart = await self._load(user_id)
            cart.add_item(item.product_id, item.quantity)
            await self._cache.set(user_id, encode_cart(cart))

        await self._run(work, "AddItem")

    async def empty_cart(self, user_id: str) -> None:
        """Replace the user's cart with an empty one."""
        logger.info(f"empty_cart called with user_id={user_id}")

        async def work() -> None:
            await self._cache.set(user_id, encode_cart(Cart(user_id=user_id)))

        await self._run(work, "EmptyCart")

    async def get_cart(self, user_id: str) -> Cart:
        """Return the user's cart; an unknown user gets an empty cart."""
        logger.info(f"get_cart called with user_id={user_id}")
        return await self._run(lambda: self._load(user_id), "GetCart")

    async def ping(self) -> bool:
        """Check that the cache answers."""
        try:
            return await self._cache.ping()
        except Exception as e:
            logger.warning(f"Cart cache ping failed: {e}")
            return False

    async def _load(self, user_id: str) -> Cart:
        value = await self._cache.get(user_id)
        if value is None:
            return Cart(user_id=user_id)
        return decode_cart(value, key=user_id)

    async def _run(self, work, operation_name: str):
        call = self._executor.execute(work, operation_name)
        if self._operation_timeout is None:
            return await call
        return await with_deadline(call, self._operation_timeout, operation_name)
