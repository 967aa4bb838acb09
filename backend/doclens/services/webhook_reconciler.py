"""Stripe Webhook Reconciler - maps verified Stripe events onto user billing state.

Events Handled:
- checkout.session.completed      -> subscription_plan (subscription plans only)
- invoice.paid                    -> date_paid
- payment_intent.succeeded        -> credits + date_paid (credit packs only)
- customer.subscription.updated   -> subscription_status + subscription_plan
- customer.subscription.deleted   -> subscription_status = deleted

Key Principles:
1. Signature verification: every event must be signed
2. Plan derivation: plan comes from the Stripe price id only
3. Users are matched on payment_processor_user_id (the Stripe customer id)
4. Exhaustive dispatch: every WebhookEventKind has exactly one handler
5. Last write wins: events are applied in arrival order, not Stripe order
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
import logging

from pymongo.errors import DuplicateKeyError

from database import database
from doclens.config import env_flag
from doclens.errors import DocLensError, NotFound, UnhandledWebhookEvent, ValidationFailed
from doclens.models.user import SubscriptionStatus
from doclens.models.webhook_events import (
    CheckoutSessionCompleted,
    InvoicePaid,
    LineItems,
    ParsedWebhookEvent,
    PaymentIntentSucceeded,
    SubscriptionDeleted,
    SubscriptionUpdated,
    WebhookEventKind,
    parse_webhook_event,
)
from doclens.services.credit_service import CreditService
from doclens.services.email_service import EmailService
from doclens.services.plan_registry import PlanEffectKind, plan_registry

logger = logging.getLogger(__name__)

GENERIC_WEBHOOK_ERROR = "Error processing Stripe webhook event"


def _from_unix(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def extract_price_id(items: LineItems) -> str:
    """The single price id of a checkout session or subscription."""
    if len(items.data) == 0:
        raise ValidationFailed("No items in stripe event object")
    if len(items.data) > 1:
        raise ValidationFailed("More than one item in stripe event object")
    return items.data[0].price.id


class WebhookReconciler:
    """Applies Stripe webhook events to users, at most once per event id when dedup is on."""

    def __init__(
        self,
        payment_processor,
        db=None,
        email_service: Optional[EmailService] = None,
        credit_service: Optional[CreditService] = None,
        dedup_enabled: Optional[bool] = None,
    ):
        self.payment_processor = payment_processor
        self.db = db
        self.email_service = email_service or EmailService()
        self.credit_service = credit_service or CreditService(db)
        self.dedup_enabled = (
            dedup_enabled if dedup_enabled is not None
            else env_flag("STRIPE_WEBHOOK_DEDUP", default=True)
        )

        self._handlers = {
            WebhookEventKind.CHECKOUT_SESSION_COMPLETED: self._handle_checkout_session_completed,
            WebhookEventKind.INVOICE_PAID: self._handle_invoice_paid,
            WebhookEventKind.PAYMENT_INTENT_SUCCEEDED: self._handle_payment_intent_succeeded,
            WebhookEventKind.SUBSCRIPTION_UPDATED: self._handle_subscription_updated,
            WebhookEventKind.SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
        }
        missing = [kind.value for kind in WebhookEventKind if kind not in self._handlers]
        if missing:
            raise RuntimeError(f"No webhook handler for: {', '.join(missing)}")

    def _get_db(self):
        if self.db is None:
            self.db = database.get_db()
        return self.db

    # =========================================================================
    # Entry point
    # =========================================================================

    async def process_webhook(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> Tuple[int, Dict[str, Any]]:
        """
        Verify, parse and apply one webhook delivery.

        Returns:
            (http_status, response_body)
        """
        event_id = None
        event_type = None
        try:
            if not signature:
                raise ValidationFailed("Stripe webhook signature not provided")

            raw_event = self.payment_processor.construct_event(payload, signature)
            if not isinstance(raw_event, dict):
                raise ValidationFailed("Error parsing Stripe event object")
            event_id = raw_event.get("id")
            event_type = raw_event.get("type")
            logger.info("WEBHOOK_RECEIVED event_id=%s event_type=%s", event_id, event_type)

            event = parse_webhook_event(raw_event)

            claimed = False
            if self.dedup_enabled and event_id:
                if not await self._claim_event(event_id, event_type):
                    logger.info("Event %s already claimed - skipping", event_id)
                    return 200, {"received": True}
                claimed = True

            try:
                await self.handle_event(event)
            except Exception:
                if claimed:
                    # failed events stay retryable
                    await self._release_claim(event_id)
                raise

            if claimed:
                await self._mark_processed(event_id)

            logger.info("WEBHOOK_PROCESSED_OK event_id=%s event_type=%s", event_id, event_type)
            return 200, {"received": True}

        except UnhandledWebhookEvent as e:
            logger.warning("WEBHOOK_UNHANDLED event_id=%s event_type=%s", event_id, event_type)
            return e.status_code, {"error": e.message}
        except DocLensError as e:
            logger.error(
                "WEBHOOK_PROCESSING_FAILED event_id=%s event_type=%s error=%s",
                event_id, event_type, e.message,
            )
            return e.status_code, {"error": e.message}
        except Exception:
            logger.exception(
                "WEBHOOK_PROCESSING_FAILED event_id=%s event_type=%s", event_id, event_type,
            )
            return 400, {"error": GENERIC_WEBHOOK_ERROR}

    async def handle_event(self, event: ParsedWebhookEvent) -> None:
        handler = self._handlers[event.kind]
        await handler(event.data)

    # =========================================================================
    # Idempotency
    # =========================================================================

    async def _claim_event(self, event_id: str, event_type: Optional[str]) -> bool:
        """Insert the PROCESSING claim; False when the event id is already claimed.

        The unique event_id index makes the insert the single point of
        arbitration between concurrent deliveries.
        """
        db = self._get_db()
        try:
            await db.stripe_events.insert_one({
                "event_id": event_id,
                "type": event_type,
                "status": "PROCESSING",
                "received_at": datetime.now(timezone.utc),
            })
        except DuplicateKeyError:
            return False
        return True

    async def _mark_processed(self, event_id: str) -> None:
        db = self._get_db()
        await db.stripe_events.update_one(
            {"event_id": event_id},
            {"$set": {"status": "PROCESSED", "processed_at": datetime.now(timezone.utc)}},
        )

    async def _release_claim(self, event_id: str) -> None:
        db = self._get_db()
        await db.stripe_events.delete_one({"event_id": event_id, "status": "PROCESSING"})

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _update_user(self, customer_id: str, fields: Dict[str, Any]) -> None:
        db = self._get_db()
        fields["updated_at"] = datetime.now(timezone.utc)
        result = await db.users.update_one(
            {"payment_processor_user_id": customer_id},
            {"$set": fields},
        )
        if result.matched_count == 0:
            raise NotFound(f"No user with Stripe customer id {customer_id}")

    async def _handle_checkout_session_completed(self, session: CheckoutSessionCompleted) -> None:
        line_items = await self.payment_processor.fetch_line_items(session.id)
        plan = plan_registry.get_plan_by_price_id(extract_price_id(line_items))
        if plan.effect.kind == PlanEffectKind.CREDITS:
            # credits are granted on payment_intent.succeeded
            return
        await self._update_user(session.customer, {"subscription_plan": plan.plan_id.value})
        logger.info("Checkout completed: customer %s -> plan %s", session.customer, plan.plan_id.value)

    async def _handle_invoice_paid(self, invoice: InvoicePaid) -> None:
        await self._update_user(invoice.customer, {"date_paid": _from_unix(invoice.period_start)})

    async def _handle_payment_intent_succeeded(self, intent: PaymentIntentSucceeded) -> None:
        if intent.invoice:
            # subscription renewals are handled by invoice.paid
            return
        if not intent.metadata.price_id:
            raise ValidationFailed("No price id found in payment intent")

        plan = plan_registry.get_plan_by_price_id(intent.metadata.price_id)
        if plan.effect.kind == PlanEffectKind.SUBSCRIPTION:
            return

        granted = await self.credit_service.grant_credits(
            intent.customer,
            plan.effect.amount,
            date_paid=_from_unix(intent.created),
        )
        if not granted:
            raise NotFound(f"No user with Stripe customer id {intent.customer}")

    async def _handle_subscription_updated(self, subscription: SubscriptionUpdated) -> None:
        plan = plan_registry.get_plan_by_price_id(extract_price_id(subscription.items))

        if subscription.status == SubscriptionStatus.ACTIVE.value:
            status = (
                SubscriptionStatus.CANCEL_AT_PERIOD_END
                if subscription.cancel_at_period_end
                else SubscriptionStatus.ACTIVE
            )
        elif subscription.status == SubscriptionStatus.PAST_DUE.value:
            status = SubscriptionStatus.PAST_DUE
        else:
            logger.info(
                "Subscription status %s for customer %s not mirrored",
                subscription.status, subscription.customer,
            )
            return

        await self._update_user(subscription.customer, {
            "subscription_status": status.value,
            "subscription_plan": plan.plan_id.value,
        })
        logger.info("Subscription updated: customer %s -> %s (%s)", subscription.customer, status.value, plan.plan_id.value)

        if status == SubscriptionStatus.CANCEL_AT_PERIOD_END:
            await self._send_retention_email(subscription.customer)

    async def _handle_subscription_deleted(self, subscription: SubscriptionDeleted) -> None:
        await self._update_user(subscription.customer, {"subscription_status": SubscriptionStatus.DELETED.value})
        logger.info("Subscription deleted: customer %s", subscription.customer)

    async def _send_retention_email(self, customer_id: str) -> None:
        """Never raises; failures are logged."""
        try:
            db = self._get_db()
            user = await db.users.find_one({"payment_processor_user_id": customer_id}, {"_id": 0, "email": 1})
            if not user or not user.get("email"):
                return
            status = await self.email_service.send_retention_email(user["email"])
        except Exception:
            logger.exception("Retention email to customer %s failed", customer_id)
            return
        if status == "failed":
            logger.warning("Retention email to customer %s failed", customer_id)
