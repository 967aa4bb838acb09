"""Payment Plan Registry - single source of truth for DocLens plans.

Maps each plan id to:
- its Stripe price id (from env, per deployment)
- its effect: a recurring subscription, or a one-off grant of N credits

Rules:
1. Plan is derived from the Stripe price id ONLY (never from client metadata)
2. Subscription plans set subscription_status/subscription_plan; credit plans never do
"""
from enum import Enum
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
import logging

from doclens.config import require_env
from doclens.errors import ValidationFailed

logger = logging.getLogger(__name__)


class PaymentPlanId(str, Enum):
    """Canonical plan ids exposed to the client."""
    HOBBY = "hobby"
    PRO = "pro"
    CREDITS_10 = "credits10"


class PlanEffectKind(str, Enum):
    SUBSCRIPTION = "subscription"
    CREDITS = "credits"


@dataclass(frozen=True)
class PlanEffect:
    kind: PlanEffectKind
    amount: int = 0  # credits granted, only for CREDITS


@dataclass(frozen=True)
class PaymentPlan:
    plan_id: PaymentPlanId
    name: str
    price_env_var: str
    effect: PlanEffect

    def get_payment_processor_plan_id(self) -> str:
        return require_env(self.price_env_var)


PAYMENT_PLANS: Dict[PaymentPlanId, PaymentPlan] = {
    PaymentPlanId.HOBBY: PaymentPlan(
        plan_id=PaymentPlanId.HOBBY,
        name="Hobby",
        price_env_var="PAYMENTS_HOBBY_SUBSCRIPTION_PLAN_ID",
        effect=PlanEffect(PlanEffectKind.SUBSCRIPTION),
    ),
    PaymentPlanId.PRO: PaymentPlan(
        plan_id=PaymentPlanId.PRO,
        name="Pro",
        price_env_var="PAYMENTS_PRO_SUBSCRIPTION_PLAN_ID",
        effect=PlanEffect(PlanEffectKind.SUBSCRIPTION),
    ),
    PaymentPlanId.CREDITS_10: PaymentPlan(
        plan_id=PaymentPlanId.CREDITS_10,
        name="10 Credits",
        price_env_var="PAYMENTS_CREDITS_10_PLAN_ID",
        effect=PlanEffect(PlanEffectKind.CREDITS, amount=10),
    ),
}

# Stripe checkout mode per plan effect
EFFECT_TO_STRIPE_MODE = {
    PlanEffectKind.SUBSCRIPTION: "subscription",
    PlanEffectKind.CREDITS: "payment",
}


class PlanRegistryService:
    """Lookups over PAYMENT_PLANS."""

    def __init__(self, plans: Optional[Dict[PaymentPlanId, PaymentPlan]] = None):
        self.plans = plans or PAYMENT_PLANS

    def get_plan(self, plan_id: PaymentPlanId) -> PaymentPlan:
        return self.plans[PaymentPlanId(plan_id)]

    def get_all_plans(self) -> List[Dict[str, Any]]:
        """Public plan list for the pricing page (no price ids)."""
        return [
            {
                "plan_id": plan.plan_id.value,
                "name": plan.name,
                "effect": plan.effect.kind.value,
                "credits": plan.effect.amount if plan.effect.kind == PlanEffectKind.CREDITS else None,
            }
            for plan in self.plans.values()
        ]

    def get_plan_by_price_id(self, price_id: str) -> PaymentPlan:
        """Resolve the plan owning a Stripe price id.

        Unknown price ids are a malformed event from our point of view.
        """
        for plan in self.plans.values():
            if plan.get_payment_processor_plan_id() == price_id:
                return plan
        logger.error("No plan with Stripe price id %s", price_id)
        raise ValidationFailed(f"No plan with Stripe price id {price_id}")

    def get_stripe_mode(self, plan: PaymentPlan) -> str:
        return EFFECT_TO_STRIPE_MODE[plan.effect.kind]

    def get_price_mappings(self) -> Dict[str, Optional[str]]:
        """plan_id -> configured price id (None when missing). For startup logging."""
        mappings = {}
        for plan in self.plans.values():
            try:
                mappings[plan.plan_id.value] = plan.get_payment_processor_plan_id()
            except RuntimeError:
                mappings[plan.plan_id.value] = None
        return mappings


# Global registry instance (static data, no I/O)
plan_registry = PlanRegistryService()
