"""Service container and FastAPI dependencies.

The container is built once in the server lifespan and stored on
``app.state.services``; routes reach services only through these
dependencies so tests can swap them with ``app.dependency_overrides``.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging

from fastapi import Depends, Header, Request

from auth import extract_bearer_token
from doclens.errors import Forbidden, Unauthenticated
from doclens.services.account_service import AccountService
from doclens.services.analysis_proxy import AnalysisProxy
from doclens.services.analytics_client import PlausibleClient
from doclens.services.chatbot import ChatbotService
from doclens.services.credit_service import CreditService
from doclens.services.daily_stats import DailyStatsJob
from doclens.services.email_service import EmailService
from doclens.services.file_storage import FileStorageService
from doclens.services.payment_processor import StripePaymentProcessor, build_payment_processor
from doclens.services.webhook_reconciler import WebhookReconciler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    db: Any
    payment_processor: StripePaymentProcessor
    credit_service: CreditService
    account_service: AccountService
    email_service: EmailService
    webhook_reconciler: WebhookReconciler
    daily_stats_job: DailyStatsJob
    analysis_proxy: AnalysisProxy
    file_storage: FileStorageService
    chatbot: ChatbotService
    scheduler: Optional[Any] = field(default=None)


def build_services(db, payment_processor: Optional[StripePaymentProcessor] = None) -> ServiceContainer:
    payment_processor = payment_processor or build_payment_processor()
    email_service = EmailService()
    credit_service = CreditService(db)
    return ServiceContainer(
        db=db,
        payment_processor=payment_processor,
        credit_service=credit_service,
        account_service=AccountService(db),
        email_service=email_service,
        webhook_reconciler=WebhookReconciler(
            payment_processor,
            db=db,
            email_service=email_service,
            credit_service=credit_service,
        ),
        daily_stats_job=DailyStatsJob(payment_processor, analytics=PlausibleClient(), db=db),
        analysis_proxy=AnalysisProxy(),
        file_storage=FileStorageService(db),
        chatbot=ChatbotService(),
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_credit_service(services: ServiceContainer = Depends(get_services)) -> CreditService:
    return services.credit_service


def get_account_service(services: ServiceContainer = Depends(get_services)) -> AccountService:
    return services.account_service


def get_payment_processor(services: ServiceContainer = Depends(get_services)) -> StripePaymentProcessor:
    return services.payment_processor


def get_webhook_reconciler(services: ServiceContainer = Depends(get_services)) -> WebhookReconciler:
    return services.webhook_reconciler


def get_daily_stats_job(services: ServiceContainer = Depends(get_services)) -> DailyStatsJob:
    return services.daily_stats_job


def get_analysis_proxy(services: ServiceContainer = Depends(get_services)) -> AnalysisProxy:
    return services.analysis_proxy


def get_file_storage(services: ServiceContainer = Depends(get_services)) -> FileStorageService:
    return services.file_storage


def get_chatbot(services: ServiceContainer = Depends(get_services)) -> ChatbotService:
    return services.chatbot


async def get_current_user(
    authorization: Optional[str] = Header(None),
    account_service: AccountService = Depends(get_account_service),
) -> Dict[str, Any]:
    """Dependency to get the current user from the bearer token."""
    token = extract_bearer_token(authorization)
    if not token:
        raise Unauthenticated()

    user = await account_service.get_current_user(token)
    if not user:
        raise Unauthenticated()
    return user


async def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not user.get("is_admin"):
        logger.warning(f"Non-admin {user.get('user_id')} attempted admin access")
        raise Forbidden("Only admins are allowed to perform this operation")
    return user
