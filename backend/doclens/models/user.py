"""DocLens User Model

Single user entity with the credit counter and Stripe billing state embedded.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime, timezone
from enum import Enum
import uuid


# New accounts get a few free analyses before they need to pay.
DEFAULT_SIGNUP_CREDITS = 3


class SubscriptionStatus(str, Enum):
    """Subscription state mirrored from Stripe. Absent means never subscribed."""
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCEL_AT_PERIOD_END = "cancel_at_period_end"
    DELETED = "deleted"


class User(BaseModel):
    user_id: str = Field(default_factory=lambda: f"DLU-{uuid.uuid4().hex[:12].upper()}")
    email: EmailStr
    username: Optional[str] = None
    password_hash: str
    is_admin: bool = False

    # Credit wallet: never negative, see CreditService.spend_credit
    credits: int = DEFAULT_SIGNUP_CREDITS

    # Stripe billing state, keyed by payment_processor_user_id in webhooks
    subscription_status: Optional[SubscriptionStatus] = None
    subscription_plan: Optional[str] = None
    payment_processor_user_id: Optional[str] = None
    date_paid: Optional[datetime] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"extra": "ignore", "use_enum_values": True}

    def to_document(self) -> dict:
        """Mongo document for insert.

        payment_processor_user_id is left out until checkout links a customer:
        the unique sparse index skips missing fields but indexes explicit nulls.
        """
        doc = self.model_dump()
        if doc.get("payment_processor_user_id") is None:
            doc.pop("payment_processor_user_id", None)
        return doc


class UserCreate(BaseModel):
    """Request model for registration"""
    email: EmailStr
    username: Optional[str] = None
    password: str = Field(min_length=8)

    model_config = {"extra": "ignore"}


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Safe user response (no password hash)"""
    user_id: str
    email: str
    username: Optional[str] = None
    is_admin: bool = False
    credits: int
    subscription_status: Optional[str] = None
    subscription_plan: Optional[str] = None
    date_paid: Optional[datetime] = None

    model_config = {"extra": "ignore"}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
