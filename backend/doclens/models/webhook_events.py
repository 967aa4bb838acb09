"""Stripe webhook payload models.

Only the fields the reconciler reads are declared; everything else in the
Stripe object is ignored. The set of event kinds is closed: anything outside
WebhookEventKind is rejected as unhandled before its payload is looked at.
"""

from pydantic import BaseModel, Field, ValidationError
from typing import Any, Dict, List, Optional, Type
from dataclasses import dataclass
from enum import Enum
import logging

from doclens.errors import UnhandledWebhookEvent, ValidationFailed

logger = logging.getLogger(__name__)


class WebhookEventKind(str, Enum):
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    INVOICE_PAID = "invoice.paid"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


class _StripeObject(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}


class Price(_StripeObject):
    id: str


class LineItem(_StripeObject):
    price: Price


class LineItems(_StripeObject):
    data: List[LineItem]


class CheckoutSessionCompleted(_StripeObject):
    id: str
    customer: str


class InvoicePaid(_StripeObject):
    customer: str
    period_start: int


class PaymentIntentMetadata(_StripeObject):
    price_id: Optional[str] = Field(default=None, alias="priceId")


class PaymentIntentSucceeded(_StripeObject):
    customer: str
    created: int
    invoice: Optional[Any] = None
    metadata: PaymentIntentMetadata = Field(default_factory=PaymentIntentMetadata)


class SubscriptionUpdated(_StripeObject):
    customer: str
    status: str
    cancel_at_period_end: bool
    items: LineItems


class SubscriptionDeleted(_StripeObject):
    customer: str


PAYLOAD_MODELS: Dict[WebhookEventKind, Type[_StripeObject]] = {
    WebhookEventKind.CHECKOUT_SESSION_COMPLETED: CheckoutSessionCompleted,
    WebhookEventKind.INVOICE_PAID: InvoicePaid,
    WebhookEventKind.PAYMENT_INTENT_SUCCEEDED: PaymentIntentSucceeded,
    WebhookEventKind.SUBSCRIPTION_UPDATED: SubscriptionUpdated,
    WebhookEventKind.SUBSCRIPTION_DELETED: SubscriptionDeleted,
}


class _Envelope(BaseModel):
    id: Optional[str] = None
    type: str
    data: Dict[str, Any]

    model_config = {"extra": "ignore"}


@dataclass
class ParsedWebhookEvent:
    kind: WebhookEventKind
    data: _StripeObject
    event_id: Optional[str] = None


def parse_webhook_event(raw_event: Dict[str, Any]) -> ParsedWebhookEvent:
    """Validate a verified Stripe event and narrow it to a known kind.

    Raises UnhandledWebhookEvent for types outside the table and
    ValidationFailed for anything that does not match the expected shape.
    """
    try:
        envelope = _Envelope.model_validate(raw_event)
    except ValidationError as e:
        logger.error("Stripe event envelope invalid: %s", e)
        raise ValidationFailed("Error parsing Stripe event object")

    try:
        kind = WebhookEventKind(envelope.type)
    except ValueError:
        raise UnhandledWebhookEvent(envelope.type)

    obj = envelope.data.get("object")
    try:
        data = PAYLOAD_MODELS[kind].model_validate(obj)
    except ValidationError as e:
        logger.error("Stripe %s payload invalid: %s", kind.value, e)
        raise ValidationFailed("Error parsing Stripe event object")

    return ParsedWebhookEvent(event_id=envelope.id, kind=kind, data=data)
