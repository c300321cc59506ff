"""Cart storage built on the resilience layer."""

from .cache import CacheBackend, InMemoryCache, RedisCache, build_cache
from .models import Cart, CartItem, decode_cart, encode_cart
from .store import CartStore

__all__ = [
    "Cart",
    "CartItem",
    "CartStore",
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
    "build_cache",
    "decode_cart",
    "encode_cart",
]
