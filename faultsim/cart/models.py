"""Cart data model and its byte encoding."""

import json
from dataclasses import asdict, dataclass, field

from ..errors import CartDataError


@dataclass
class CartItem:
    """Single product line in a cart."""

    product_id: str
    quantity: int

    def __post_init__(self):
        if not isinstance(self.product_id, str) or not self.product_id:
            raise ValueError("product_id must be a non-empty string")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError("quantity must be an integer")
        if self.quantity <= 0:
            raise ValueError("quantity must be positive")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        return cls(product_id=data["product_id"], quantity=data["quantity"])


@dataclass
class Cart:
    """A user's cart. Holds at most one item per product."""

    user_id: str = ""
    items: list[CartItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def find(self, product_id: str):
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def add_item(self, product_id: str, quantity: int) -> CartItem:
        """Add ``quantity`` of a product, merging with an existing line."""
        incoming = CartItem(product_id=product_id, quantity=quantity)
        existing = self.find(product_id)
        if existing is None:
            self.items.append(incoming)
            return incoming
        existing.quantity += incoming.quantity
        return existing

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        user_id = data.get("user_id", "")
        if not isinstance(user_id, str):
            raise ValueError(f"user_id must be a string, got {type(user_id).__name__}")
        cart = cls(user_id=user_id)
        for raw in data.get("items", []):
            item = CartItem.from_dict(raw)
            if cart.find(item.product_id) is not None:
                raise ValueError(f"duplicate product {item.product_id}")
            cart.items.append(item)
        return cart


def encode_cart(cart: Cart) -> bytes:
    """Serialize a cart for the cache."""
    return json.dumps(cart.to_dict(), separators=(",", ":")).encode("utf-8")


def decode_cart(data: bytes, key: str = "") -> Cart:
    """Deserialize cached cart bytes.

    Raises:
        CartDataError: If the payload is not a valid cart
    """
    try:
        payload = json.loads(data)
        if not isinstance(payload, dict):
            raise TypeError(f"expected object, got {type(payload).__name__}")
        return Cart.from_dict(payload)
    except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise CartDataError(f"Corrupted cart data for {key or 'unknown key'}: {e}", key=key) from e
