from shared.config import settings
from shared.persistence import atomic
from services.cart_service.repository import CartRepository

from .models import Order, OrderItem, OrderStatus, PaymentMethod
from .repository import OrderRepository
from .saga import SagaOrchestrator

RECEIPT_MAX_LENGTH = 40  # gateway limit


# --- ACTIONS ---

async def persist_sub_orders(ctx: dict):
    db, caller, priced = ctx["db"], ctx["caller"], ctx["priced"]
    coupon = ctx.get("coupon")
    orders = [
        Order(
            user_id=caller.user_id,
            vendor_id=bucket.vendor_id,
            address_id=ctx["address_id"],
            total=bucket.total,
            payment_method=ctx["payment_method"],
            is_paid=False,
            status=OrderStatus.ORDER_PLACED,
            is_coupon_used=coupon is not None,
            coupon_code=coupon.code if coupon else None,
            coupon_discount=coupon.discount if coupon else None,
            items=[
                OrderItem(product_id=line.product_id, quantity=line.quantity, price=line.unit_price)
                for line in bucket.lines
            ],
        )
        for bucket in priced.buckets
    ]

    async with atomic(db, "checkout_persist_sub_orders"):
        await OrderRepository.add_orders(db, orders)
        # Cash on delivery needs no confirmation: the cart goes in the same unit
        if ctx["payment_method"] == PaymentMethod.COD:
            await CartRepository.clear(db, [caller.user_id])

    ctx["order_ids"] = [order.id for order in orders]


async def open_gateway_order(ctx: dict):
    gateway, priced, order_ids = ctx["gateway"], ctx["priced"], ctx["order_ids"]
    receipt = f"receipt_{'_'.join(order_ids)}"[:RECEIPT_MAX_LENGTH]
    ctx["gateway_order"] = await gateway.create_order(
        amount_minor=priced.grand_total_minor,
        currency=settings.GATEWAY_CURRENCY,
        receipt=receipt,
        notes={
            "orderIds": ",".join(order_ids),
            "userId": ctx["caller"].user_id,
            "appId": settings.APP_ID,
        },
    )


async def attach_correlation_id(ctx: dict):
    db = ctx["db"]
    async with atomic(db, "checkout_attach_correlation_id"):
        await OrderRepository.set_gateway_order_id(db, ctx["order_ids"], ctx["gateway_order"]["id"])


# --- COMPENSATIONS (Rollbacks) ---

async def discard_sub_orders(ctx: dict):
    db, order_ids = ctx["db"], ctx.get("order_ids")
    if order_ids:
        async with atomic(db, "checkout_discard_sub_orders"):
            await OrderRepository.delete_unpaid(db, order_ids)


# --- BUILDER FACTORY ---

def build_checkout_saga(payment_method: PaymentMethod) -> SagaOrchestrator:
    saga = SagaOrchestrator("checkout")
    saga.add_step("persist_sub_orders", persist_sub_orders, discard_sub_orders)
    if payment_method != PaymentMethod.COD:
        saga.add_step("open_gateway_order", open_gateway_order, None)  # remote order simply expires unused
        saga.add_step("attach_correlation_id", attach_correlation_id, None)
    return saga
