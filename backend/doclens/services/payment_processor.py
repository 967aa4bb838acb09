"""Stripe Payment Processor - checkout, portal, webhook verification, revenue.

This adapter is the only module that talks to the Stripe API.

Key Principles:
- Constructed explicitly in the app lifespan (see dependencies.ServiceContainer)
- API key passed per request, never assigned to the stripe module globally
- Stripe errors propagate to the caller (no retry here)
"""
import json
import os
import logging
from typing import Any, Dict, Optional

import stripe

from doclens.config import get_client_url, get_stripe_api_key, get_stripe_mode, require_env
from doclens.errors import DocLensError, ValidationFailed
from doclens.models.webhook_events import LineItems
from doclens.services.plan_registry import PaymentPlan, plan_registry

logger = logging.getLogger(__name__)

REVENUE_LEDGER_ID = "stripe"
BALANCE_PAGE_SIZE = 100


class StripePaymentProcessor:
    """Stripe billing operations."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        customer_portal_url: Optional[str] = None,
        client_url: Optional[str] = None,
    ):
        self.api_key = api_key if api_key is not None else get_stripe_api_key()
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None
            else (os.getenv("STRIPE_WEBHOOK_SECRET") or "").strip()
        )
        self.customer_portal_url = customer_portal_url
        self.client_url = client_url or get_client_url()
        self.started = False

    async def start(self):
        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY / STRIPE_API_KEY not set - Stripe calls will fail")
        if not self.webhook_secret:
            logger.warning("STRIPE_WEBHOOK_SECRET not set - webhooks will be rejected")
        logger.info("Stripe payment processor started (mode=%s)", get_stripe_mode(self.api_key))
        self.started = True

    async def close(self):
        self.started = False
        logger.info("Stripe payment processor closed")

    # =========================================================================
    # Checkout / portal
    # =========================================================================

    async def fetch_or_create_customer(self, email: str) -> str:
        """Return the Stripe customer id for an email, creating the customer if needed."""
        customers = stripe.Customer.list(email=email, limit=1, api_key=self.api_key)
        if customers.data:
            return customers.data[0].id

        customer = stripe.Customer.create(email=email, api_key=self.api_key)
        logger.info("Stripe customer created: %s", customer.id)
        return customer.id

    async def create_checkout_session(
        self,
        user_id: str,
        user_email: str,
        plan: PaymentPlan,
    ) -> Dict[str, Any]:
        """
        Create a Stripe Checkout session for a plan.

        Subscription plans open a ``subscription`` session, credit packs a
        ``payment`` session whose payment intent carries the price id in its
        metadata (read back by the payment_intent.succeeded handler).

        Returns:
            Dict with session_url, session_id and customer_id
        """
        customer_id = await self.fetch_or_create_customer(user_email)
        price_id = plan.get_payment_processor_plan_id()
        mode = plan_registry.get_stripe_mode(plan)

        session_params = {
            "mode": mode,
            "customer": customer_id,
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": f"{self.client_url}/checkout?success=true",
            "cancel_url": f"{self.client_url}/checkout?canceled=true",
            "automatic_tax": {"enabled": True},
            "customer_update": {"address": "auto"},
            "metadata": {"user_id": user_id, "plan_id": plan.plan_id.value},
        }
        if mode == "payment":
            session_params["payment_intent_data"] = {"metadata": {"priceId": price_id}}

        session = stripe.checkout.Session.create(api_key=self.api_key, **session_params)
        if not session.url:
            raise RuntimeError("Error creating Stripe checkout session")

        logger.info(
            "Checkout session created for user %s: %s (plan=%s mode=%s)",
            user_id, session.id, plan.plan_id.value, mode,
        )
        return {
            "session_url": session.url,
            "session_id": session.id,
            "customer_id": customer_id,
        }

    async def fetch_customer_portal_url(self, user_id: str) -> str:
        url = self.customer_portal_url or require_env("STRIPE_CUSTOMER_PORTAL_URL")
        logger.info("Customer portal requested by user %s", user_id)
        return url

    # =========================================================================
    # Webhooks
    # =========================================================================

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """Verify the stripe-signature header over the raw body and return the event.

        The verified body is decoded with json so handlers work on plain dicts.
        """
        if not self.webhook_secret:
            raise RuntimeError("STRIPE_WEBHOOK_SECRET environment variable not set")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.error("Webhook signature verification failed: %s", e)
            raise ValidationFailed("Invalid Stripe signature")
        except ValueError as e:
            logger.error("Webhook payload could not be decoded: %s", e)
            raise ValidationFailed("Invalid Stripe payload")
        return json.loads(payload)

    async def fetch_line_items(self, session_id: str) -> LineItems:
        """Line items of a checkout session (not included in the webhook payload)."""
        try:
            session = stripe.checkout.Session.retrieve(
                session_id, expand=["line_items"], api_key=self.api_key
            )
        except stripe.StripeError as e:
            logger.error("Line items for checkout session %s could not be fetched: %s", session_id, e)
            raise DocLensError("Error parsing Stripe line items", status_code=500)
        line_items = session.line_items
        items = []
        for item in (line_items.data if line_items else []):
            items.append({"price": {"id": item.price.id}})
        return LineItems.model_validate({"data": items})

    # =========================================================================
    # Revenue
    # =========================================================================

    async def fetch_total_revenue(self, db) -> float:
        """
        Lifetime revenue from charge balance transactions, in major units.

        Incremental: the revenue_ledger document keeps the running total in
        cents, the newest ``created`` seen and the ids at that timestamp.
        Each run only pages through transactions created at or after that
        point, skipping the boundary ids already counted.
        """
        ledger = await db.revenue_ledger.find_one({"ledger_id": REVENUE_LEDGER_ID}, {"_id": 0}) or {}
        total_cents = ledger.get("total_cents", 0)
        last_created = ledger.get("last_created")
        seen_at_boundary = set(ledger.get("boundary_ids") or [])

        newest_created = last_created
        newest_ids = set(seen_at_boundary)

        params = {"limit": BALANCE_PAGE_SIZE, "type": "charge", "api_key": self.api_key}
        if last_created is not None:
            params["created"] = {"gte": last_created}

        counted = 0
        starting_after = None
        while True:
            if starting_after:
                params["starting_after"] = starting_after
            page = stripe.BalanceTransaction.list(**params)

            for txn in page.data:
                if txn.id in seen_at_boundary:
                    continue
                total_cents += txn.amount
                counted += 1
                if newest_created is None or txn.created > newest_created:
                    newest_created = txn.created
                    newest_ids = {txn.id}
                elif txn.created == newest_created:
                    newest_ids.add(txn.id)

            if not page.has_more or not page.data:
                break
            starting_after = page.data[-1].id

        await db.revenue_ledger.update_one(
            {"ledger_id": REVENUE_LEDGER_ID},
            {"$set": {
                "total_cents": total_cents,
                "last_created": newest_created,
                "boundary_ids": sorted(newest_ids),
            }},
            upsert=True,
        )
        logger.info("Revenue ledger updated: %d new charges, total %d cents", counted, total_cents)
        return total_cents / 100


def build_payment_processor() -> StripePaymentProcessor:
    return StripePaymentProcessor(
        customer_portal_url=(os.getenv("STRIPE_CUSTOMER_PORTAL_URL") or "").strip() or None,
    )
