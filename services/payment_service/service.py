"""
Payment reconciliation.

Two channels confirm a payment: the gateway's signed webhook and the
client's verification call. They race. Both end in
``OrderRepository.mark_paid`` inside one transaction, whose
``is_paid = false`` predicate lets exactly one of them apply the change; the
other sees nothing left to update and answers success anyway.
"""
import time

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.errors import NotFoundError, SignatureError, ValidationError
from shared.observability import (
    ecomm_payment_verification_total,
    ecomm_webhook_events_total,
    ecomm_webhook_processing_seconds,
)
from shared.persistence import atomic
from shared.security import CallerIdentity, verify_payment_signature, verify_webhook_signature
from services.cart_service.repository import CartRepository
from services.order_service.repository import OrderRepository

from .schemas import (
    PAYMENT_CAPTURED,
    PAYMENT_FAILED,
    OrderEntity,
    PaymentEntity,
    PaymentVerificationRequest,
    PaymentVerificationResponse,
    WebhookAck,
    WebhookEvent,
)

logger = structlog.get_logger(__name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class ReconciliationService:

    # --- Webhook ingestion ---

    @staticmethod
    def parse_webhook(raw_body: bytes) -> WebhookEvent:
        try:
            return WebhookEvent.model_validate_json(raw_body)
        except PydanticValidationError as exc:
            problems = [
                f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
                for err in exc.errors()
            ]
            ecomm_webhook_events_total.labels(event="unknown", outcome="invalid").inc()
            logger.warning("webhook_invalid_payload", errors=problems)
            raise ValidationError(
                f"Webhook validation failed: {', '.join(problems)}",
                operation="webhook_validation",
            ) from exc

    @staticmethod
    async def handle_webhook(db: AsyncSession, raw_body: bytes, signature: str | None) -> WebhookAck:
        started = time.perf_counter()
        event = ReconciliationService.parse_webhook(raw_body)

        if not verify_webhook_signature(raw_body, signature, settings.GATEWAY_WEBHOOK_SECRET):
            ecomm_webhook_events_total.labels(event=event.event, outcome="rejected").inc()
            logger.error(
                "webhook_signature_invalid",
                event_type=event.event,
                event_id=event.id,
                signature_provided=bool(signature),
            )
            raise SignatureError("Invalid webhook signature", operation="signature_verification")

        if event.event == PAYMENT_CAPTURED:
            ack = await ReconciliationService._payment_captured(
                db, event.payload.payment.entity, event.payload.order.entity
            )
        elif event.event == PAYMENT_FAILED:
            ack = await ReconciliationService._payment_failed(
                db, event.payload.payment.entity, event.payload.order.entity
            )
        else:
            ecomm_webhook_events_total.labels(event=event.event, outcome="ignored").inc()
            logger.info("webhook_event_unhandled", event_type=event.event, event_id=event.id)
            ack = WebhookAck(message=f"Unhandled event type: {event.event}")

        ecomm_webhook_processing_seconds.observe(time.perf_counter() - started)
        logger.info(
            "webhook_processed",
            event_type=event.event,
            event_id=event.id,
            processing_ms=_elapsed_ms(started),
        )
        return ack

    @staticmethod
    def _foreign_app(event_type: str, payment: PaymentEntity, order: OrderEntity) -> WebhookAck | None:
        if order.notes.appId == settings.APP_ID:
            return None
        ecomm_webhook_events_total.labels(event=event_type, outcome="ignored").inc()
        logger.warning(
            "webhook_foreign_app_id",
            event_type=event_type,
            app_id=order.notes.appId,
            gateway_order_id=payment.order_id,
        )
        return WebhookAck(message="Invalid app ID - webhook ignored")

    @staticmethod
    async def _payment_captured(db: AsyncSession, payment: PaymentEntity, order: OrderEntity) -> WebhookAck:
        started = time.perf_counter()
        ignored = ReconciliationService._foreign_app(PAYMENT_CAPTURED, payment, order)
        if ignored is not None:
            return ignored

        order_ids = order.notes.order_id_list
        async with atomic(db, "webhook_payment_captured"):
            updated = await OrderRepository.mark_paid(
                db,
                order_ids,
                gateway_order_id=payment.order_id,
                gateway_payment_id=payment.id,
                gateway_signature=payment.signature or "",
            )
            if updated:
                await CartRepository.clear(db, await OrderRepository.owners_of(db, updated))

        outcome = "applied" if updated else "duplicate"
        ecomm_webhook_events_total.labels(event=PAYMENT_CAPTURED, outcome=outcome).inc()
        logger.info(
            "webhook_payment_captured",
            gateway_order_id=payment.order_id,
            gateway_payment_id=payment.id,
            order_count=len(order_ids),
            updated_count=len(updated),
            processing_ms=_elapsed_ms(started),
        )
        return WebhookAck(message="Payment captured successfully", order_ids=order_ids)

    @staticmethod
    async def _payment_failed(db: AsyncSession, payment: PaymentEntity, order: OrderEntity) -> WebhookAck:
        started = time.perf_counter()
        ignored = ReconciliationService._foreign_app(PAYMENT_FAILED, payment, order)
        if ignored is not None:
            return ignored

        order_ids = order.notes.order_id_list
        async with atomic(db, "webhook_payment_failed"):
            deleted = await OrderRepository.delete_unpaid(db, order_ids)

        ecomm_webhook_events_total.labels(event=PAYMENT_FAILED, outcome="applied" if deleted else "duplicate").inc()
        logger.info(
            "webhook_payment_failed",
            gateway_order_id=payment.order_id,
            gateway_payment_id=payment.id,
            order_count=len(order_ids),
            deleted_count=len(deleted),
            processing_ms=_elapsed_ms(started),
        )
        return WebhookAck(message="Payment failure processed", order_ids=order_ids)

    # --- Client verification ---

    @staticmethod
    async def verify_payment(
        db: AsyncSession, caller: CallerIdentity, data: PaymentVerificationRequest
    ) -> PaymentVerificationResponse:
        started = time.perf_counter()

        if not verify_payment_signature(
            data.gateway_order_id,
            data.gateway_payment_id,
            data.gateway_signature,
            settings.GATEWAY_KEY_SECRET,
        ):
            ecomm_payment_verification_total.labels(outcome="rejected").inc()
            logger.error(
                "payment_signature_invalid",
                user_id=caller.user_id,
                gateway_order_id=data.gateway_order_id,
                gateway_payment_id=data.gateway_payment_id,
            )
            raise SignatureError(
                "Payment verification failed", operation="signature_verification", status_code=400
            )

        async with atomic(db, "payment_verification"):
            orders = await OrderRepository.find_by_gateway_order(db, data.gateway_order_id, caller.user_id)
            order_ids = [order.id for order in orders]
            already_verified = bool(orders) and all(order.is_paid for order in orders)
            if orders and not already_verified:
                await OrderRepository.mark_paid(
                    db,
                    order_ids,
                    gateway_order_id=data.gateway_order_id,
                    gateway_payment_id=data.gateway_payment_id,
                    gateway_signature=data.gateway_signature,
                )
                await CartRepository.clear(db, [caller.user_id])

        if not orders:
            ecomm_payment_verification_total.labels(outcome="not_found").inc()
            raise NotFoundError("Orders not found", operation="payment_verification")

        outcome = "already_verified" if already_verified else "verified"
        ecomm_payment_verification_total.labels(outcome=outcome).inc()
        logger.info(
            "payment_verified",
            user_id=caller.user_id,
            order_ids=order_ids,
            already_verified=already_verified,
            processing_ms=_elapsed_ms(started),
        )
        return PaymentVerificationResponse(
            message="Payment already verified" if already_verified else "Payment verified successfully",
            order_ids=order_ids,
            already_verified=already_verified,
        )
