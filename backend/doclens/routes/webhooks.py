"""DocLens Stripe Webhook Route

Raw body in, signature checked by the reconciler. Always answers with the
status the reconciler chose so Stripe retries only what may succeed later.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
import logging

from doclens.dependencies import get_webhook_reconciler
from doclens.services.webhook_reconciler import WebhookReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Webhooks"])


@router.post("/webhook")
async def handle_stripe_webhook(
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    status_code, body = await reconciler.process_webhook(payload, signature)
    return JSONResponse(status_code=status_code, content=body)
