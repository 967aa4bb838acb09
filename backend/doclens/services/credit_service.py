"""DocLens Credit Service

Single-counter credit wallet stored on the user document:
- spend: atomic decrement with a floor of zero
- grant: atomic increment (credit pack purchases)
- balance lookup
"""

from datetime import datetime, timezone
from typing import Optional
import logging

from database import database
from doclens.errors import InsufficientCredits, NotFound, Unauthenticated, ValidationFailed

logger = logging.getLogger(__name__)


class CreditService:
    """Credit economy management service."""

    def __init__(self, db=None):
        self.db = db

    def _get_db(self):
        if self.db is None:
            self.db = database.get_db()
        return self.db

    async def spend_credit(self, user_id: str) -> None:
        """Consume one credit.

        The filter ``credits > 0`` and the ``$inc`` run as one update_one, so
        concurrent spends against the last credit cannot both match.
        """
        if not user_id:
            raise Unauthenticated()

        db = self._get_db()
        result = await db.users.update_one(
            {"user_id": user_id, "credits": {"$gt": 0}},
            {
                "$inc": {"credits": -1},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )
        if result.modified_count == 0:
            logger.info("Credit spend rejected for user %s: no credits", user_id)
            raise InsufficientCredits()

    async def get_balance(self, user_id: str) -> int:
        db = self._get_db()
        user = await db.users.find_one({"user_id": user_id}, {"_id": 0, "credits": 1})
        if not user:
            raise NotFound(f"User {user_id} not found")
        return user.get("credits", 0)

    async def grant_credits(
        self,
        payment_processor_user_id: str,
        amount: int,
        date_paid: Optional[datetime] = None,
    ) -> bool:
        """Add credits to the user owning a Stripe customer id.

        date_paid, when given, is written in the same update.
        Returns False when no user matches the customer id.
        """
        if amount <= 0:
            raise ValidationFailed("Amount must be positive for adding credits")

        db = self._get_db()
        set_fields = {"updated_at": datetime.now(timezone.utc)}
        if date_paid is not None:
            set_fields["date_paid"] = date_paid

        result = await db.users.update_one(
            {"payment_processor_user_id": payment_processor_user_id},
            {
                "$inc": {"credits": amount},
                "$set": set_fields,
            },
        )
        if result.matched_count == 0:
            logger.warning("Credit grant: no user for Stripe customer %s", payment_processor_user_id)
            return False

        logger.info("Granted %d credits to Stripe customer %s", amount, payment_processor_user_id)
        return True
