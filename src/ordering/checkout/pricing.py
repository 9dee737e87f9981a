"""Checkout pricing: subtotal, flat shipping fee and free-shipping threshold."""

from dataclasses import dataclass

DEFAULT_SHIPPING_FEE = 99.0
DEFAULT_FREE_SHIPPING_THRESHOLD = 5000.0


@dataclass(frozen=True)
class Pricing:
    subtotal: float
    shipping_cost: float
    total_amount: float


def shipping_for(
    subtotal: float,
    shipping_fee: float = DEFAULT_SHIPPING_FEE,
    free_shipping_threshold: float = DEFAULT_FREE_SHIPPING_THRESHOLD,
) -> float:
    """Shipping is free only when the subtotal is strictly above the threshold."""
    return 0.0 if subtotal > free_shipping_threshold else shipping_fee


def price(
    lines,
    shipping_fee: float = DEFAULT_SHIPPING_FEE,
    free_shipping_threshold: float = DEFAULT_FREE_SHIPPING_THRESHOLD,
) -> Pricing:
    """Price an iterable of objects exposing ``unit_price`` and ``quantity``."""
    subtotal = round(sum(line.unit_price * line.quantity for line in lines), 2)
    shipping_cost = shipping_for(subtotal, shipping_fee, free_shipping_threshold)
    return Pricing(subtotal=subtotal, shipping_cost=shipping_cost, total_amount=round(subtotal + shipping_cost, 2))
