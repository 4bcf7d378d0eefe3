from decimal import Decimal
from types import SimpleNamespace

from services.order_service.pricing import price_checkout, split_by_vendor, to_minor_units

PRODUCTS = {
    "lamp": SimpleNamespace(vendor_id="vendor-a", price=Decimal("100.00")),
    "shade": SimpleNamespace(vendor_id="vendor-a", price=Decimal("20.00")),
    "rug": SimpleNamespace(vendor_id="vendor-b", price=Decimal("50.00")),
    "mug": SimpleNamespace(vendor_id="vendor-c", price=Decimal("9.99")),
}


def test_buckets_follow_first_seen_vendor_order():
    buckets = split_by_vendor([("rug", 1), ("lamp", 1), ("shade", 2)], PRODUCTS)

    assert [b.vendor_id for b in buckets] == ["vendor-b", "vendor-a"]
    assert [line.product_id for line in buckets[1].lines] == ["lamp", "shade"]


def test_repeated_product_is_merged_into_one_line():
    buckets = split_by_vendor([("lamp", 1), ("lamp", 2)], PRODUCTS)

    assert len(buckets[0].lines) == 1
    assert buckets[0].lines[0].quantity == 3


def test_shipping_goes_on_first_bucket_only_for_non_members():
    priced = price_checkout(
        [("lamp", 1), ("rug", 2)], PRODUCTS, charge_shipping=True, shipping_fee=Decimal("5")
    )

    assert [b.total for b in priced.buckets] == [Decimal("105.00"), Decimal("100.00")]
    assert priced.buckets[1].shipping_fee == Decimal("0.00")
    assert priced.grand_total == Decimal("205.00")
    assert priced.grand_total_minor == 20500


def test_members_pay_no_shipping():
    priced = price_checkout(
        [("lamp", 1), ("rug", 2)], PRODUCTS, charge_shipping=False, shipping_fee=Decimal("5")
    )

    assert priced.grand_total == Decimal("200.00")


def test_coupon_discounts_every_vendor_subtotal_before_shipping():
    priced = price_checkout(
        [("lamp", 1), ("rug", 1)],
        PRODUCTS,
        discount_percent=Decimal("10"),
        charge_shipping=True,
        shipping_fee=Decimal("5"),
    )

    # vendor-a: 100 - 10 + 5; vendor-b: 50 - 5
    assert [b.total for b in priced.buckets] == [Decimal("95.00"), Decimal("45.00")]


def test_bucket_totals_are_rounded_half_up_to_cents():
    priced = price_checkout(
        [("mug", 1)], PRODUCTS, discount_percent=Decimal("15"), charge_shipping=False
    )

    # 9.99 * 0.85 = 8.4915
    assert priced.buckets[0].total == Decimal("8.49")
    assert to_minor_units(Decimal("0.125")) == 13
