"""Example script demonstrating faultsim failure injection and recovery."""

import asyncio
import logging

from faultsim.cart import CartStore, build_cache
from faultsim.config import load_settings
from faultsim.errors import GatewayTimeoutError, StorageUnavailableError
from faultsim.log import configure_logging
from faultsim.monitoring import generate_metrics
from faultsim.resilience import DelayConfig, DelayInjector

logger = logging.getLogger(__name__)


async def main():
    """Run a short shopping session against the configured cart cache."""
    settings = load_settings()
    configure_logging(settings.log_level)

    logger.info("=" * 60)
    logger.info("faultsim storefront demo")
    logger.info("=" * 60)

    store = CartStore.from_settings(build_cache(settings), settings)
    payments = DelayInjector(DelayConfig.from_settings(settings))

    users = ["user-1", "user-2", "user-3"]
    products = ["OLJCESPC7Z", "66VCHSJNUP", "1YMWWN1N4O"]

    for user_id in users:
        try:
            for product_id in products:
                await store.add_item(user_id, product_id, 1)
            cart = await store.get_cart(user_id)
            logger.info(f"[{user_id}] cart holds {cart.total_quantity} items")

            transaction_id = await payments.call("Charge", lambda: f"txn-{user_id}")
            logger.info(f"[{user_id}] charged, transaction {transaction_id}")

            await store.empty_cart(user_id)
        except StorageUnavailableError as e:
            logger.error(f"[{user_id}] cart storage unavailable: {e}")
        except GatewayTimeoutError as e:
            logger.error(f"[{user_id}] payment failed: {e}")

    logger.info("-" * 60)
    logger.info("Metrics:\n" + generate_metrics())


if __name__ == "__main__":
    asyncio.run(main())
