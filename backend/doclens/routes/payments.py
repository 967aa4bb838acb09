"""DocLens Payment Routes

Endpoints:
- GET /api/payments/plans - Available plans
- POST /api/payments/checkout-session - Create Stripe checkout for a plan
- GET /api/payments/customer-portal - Stripe customer portal URL
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
import logging

from doclens.dependencies import get_account_service, get_current_user, get_payment_processor
from doclens.errors import Forbidden
from doclens.services.account_service import AccountService
from doclens.services.payment_processor import StripePaymentProcessor
from doclens.services.plan_registry import PaymentPlanId, plan_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])


class CheckoutRequest(BaseModel):
    plan_id: PaymentPlanId


class CheckoutResponse(BaseModel):
    session_url: str
    session_id: str


class PortalResponse(BaseModel):
    url: str


@router.get("/plans")
async def list_plans():
    return {"plans": plan_registry.get_all_plans()}


@router.post("/checkout-session", response_model=CheckoutResponse)
async def create_checkout_session(
    data: CheckoutRequest,
    user=Depends(get_current_user),
    payment_processor: StripePaymentProcessor = Depends(get_payment_processor),
    account_service: AccountService = Depends(get_account_service),
):
    """Create a Stripe Checkout session and link the user to the Stripe customer."""
    if not user.get("email"):
        raise Forbidden("User needs an email to make a payment")

    plan = plan_registry.get_plan(data.plan_id)
    session = await payment_processor.create_checkout_session(
        user_id=user["user_id"],
        user_email=user["email"],
        plan=plan,
    )
    await account_service.set_payment_processor_user_id(user["user_id"], session["customer_id"])

    return CheckoutResponse(session_url=session["session_url"], session_id=session["session_id"])


@router.get("/customer-portal", response_model=PortalResponse)
async def get_customer_portal_url(
    user=Depends(get_current_user),
    payment_processor: StripePaymentProcessor = Depends(get_payment_processor),
):
    return PortalResponse(url=await payment_processor.fetch_customer_portal_url(user["user_id"]))
