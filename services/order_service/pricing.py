"""
Cart splitting and pricing.

Pure functions: given resolved products, group checkout lines by vendor (in
the order vendors first appear), discount each vendor subtotal by the coupon
percentage, and put the flat shipping fee on the first vendor bucket only.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Gateway amounts are integers in the currency's smallest unit (paisa, cents)."""
    return int((quantize_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


@dataclass
class PricedLine:
    product_id: str
    quantity: int
    unit_price: Decimal

    @property
    def amount(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class VendorBucket:
    vendor_id: str
    lines: list[PricedLine] = field(default_factory=list)
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    shipping_fee: Decimal = ZERO
    total: Decimal = ZERO


@dataclass
class PricedCheckout:
    buckets: list[VendorBucket]
    grand_total: Decimal

    @property
    def grand_total_minor(self) -> int:
        return to_minor_units(self.grand_total)


def split_by_vendor(items: list[tuple[str, int]], products: dict) -> list[VendorBucket]:
    """Group ``(product_id, quantity)`` pairs into per-vendor buckets.

    ``products`` maps product id to anything with ``vendor_id`` and ``price``.
    A product listed twice becomes a single line with the summed quantity.
    """
    buckets: "OrderedDict[str, VendorBucket]" = OrderedDict()
    for product_id, quantity in items:
        product = products[product_id]
        bucket = buckets.setdefault(product.vendor_id, VendorBucket(vendor_id=product.vendor_id))
        for line in bucket.lines:
            if line.product_id == product_id:
                line.quantity += quantity
                break
        else:
            bucket.lines.append(
                PricedLine(product_id=product_id, quantity=quantity, unit_price=Decimal(product.price))
            )
    return list(buckets.values())


def price_checkout(
    items: list[tuple[str, int]],
    products: dict,
    *,
    discount_percent: Optional[Decimal] = None,
    charge_shipping: bool = True,
    shipping_fee: Decimal = ZERO,
) -> PricedCheckout:
    buckets = split_by_vendor(items, products)
    shipping_added = False
    grand_total = ZERO

    for bucket in buckets:
        bucket.subtotal = sum((line.amount for line in bucket.lines), ZERO)
        total = bucket.subtotal
        if discount_percent is not None:
            bucket.discount = total * Decimal(discount_percent) / Decimal(100)
            total -= bucket.discount
        if charge_shipping and not shipping_added:
            bucket.shipping_fee = shipping_fee
            total += shipping_fee
            shipping_added = True
        bucket.total = quantize_money(total)
        grand_total += bucket.total

    return PricedCheckout(buckets=buckets, grand_total=grand_total)
