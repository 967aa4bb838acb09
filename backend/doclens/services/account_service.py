"""DocLens Account Service

Register / login / token resolution for DocLens users, plus the few
billing fields the payment routes write onto the user row.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
import logging

from pymongo.errors import DuplicateKeyError

from database import database
from auth import (
    hash_password,
    verify_password,
    create_access_token,
    decode_access_token,
)
from doclens.config import get_admin_emails
from doclens.errors import PersistenceConflict, Unauthenticated
from doclens.models.user import (
    User,
    UserCreate,
    UserLogin,
    UserResponse,
    TokenResponse,
)

logger = logging.getLogger(__name__)


def to_user_response(user: Dict[str, Any]) -> UserResponse:
    return UserResponse(**user)


class AccountService:
    """Authentication service for DocLens users."""

    def __init__(self, db=None):
        self.db = db

    def _get_db(self):
        if self.db is None:
            self.db = database.get_db()
        return self.db

    async def register(self, data: UserCreate) -> TokenResponse:
        """Create a user with the signup credit allowance and return a token."""
        db = self._get_db()
        email = data.email.lower()

        user = User(
            email=email,
            username=data.username,
            password_hash=hash_password(data.password),
            is_admin=email in get_admin_emails(),
        )
        try:
            await db.users.insert_one(user.to_document())
        except DuplicateKeyError as e:
            logger.warning(f"Registration conflict for {email}: {e}")
            raise PersistenceConflict("Email already registered")

        logger.info(f"New DocLens user registered: {user.user_id}")
        return self._token_for(user.model_dump())

    async def login(self, data: UserLogin) -> TokenResponse:
        db = self._get_db()
        user = await db.users.find_one({"email": data.email.lower()}, {"_id": 0})
        if not user or not verify_password(data.password, user["password_hash"]):
            raise Unauthenticated("Invalid email or password")
        return self._token_for(user)

    def _token_for(self, user: Dict[str, Any]) -> TokenResponse:
        token = create_access_token({"sub": user["user_id"], "email": user["email"]})
        return TokenResponse(access_token=token, user=to_user_response(user))

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        db = self._get_db()
        return await db.users.find_one({"user_id": user_id}, {"_id": 0, "password_hash": 0})

    async def get_current_user(self, token: str) -> Optional[Dict[str, Any]]:
        """User document for a bearer token, or None."""
        payload = decode_access_token(token)
        if not payload or not payload.get("sub"):
            return None
        return await self.get_user(payload["sub"])

    async def set_payment_processor_user_id(self, user_id: str, customer_id: str) -> None:
        """Link a user to their Stripe customer (join key for webhooks)."""
        db = self._get_db()
        try:
            await db.users.update_one(
                {"user_id": user_id},
                {"$set": {
                    "payment_processor_user_id": customer_id,
                    "updated_at": datetime.now(timezone.utc),
                }},
            )
        except DuplicateKeyError as e:
            logger.error(f"Stripe customer {customer_id} already linked to another user: {e}")
            raise PersistenceConflict("Payment account already linked to another user")
