"""DocLens Authentication Routes

Endpoints:
- POST /api/auth/register - Register new user
- POST /api/auth/login - User login
- GET /api/auth/me - Get current user
"""

from fastapi import APIRouter, Depends
import logging

from doclens.dependencies import get_account_service, get_current_user
from doclens.models.user import UserCreate, UserLogin, UserResponse, TokenResponse
from doclens.services.account_service import AccountService, to_user_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", response_model=TokenResponse)
async def register(data: UserCreate, account_service: AccountService = Depends(get_account_service)):
    """Register a new user. New users get a few free credits."""
    return await account_service.register(data)


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, account_service: AccountService = Depends(get_account_service)):
    return await account_service.login(data)


@router.get("/me", response_model=UserResponse)
async def get_me(user=Depends(get_current_user)):
    return to_user_response(user)
