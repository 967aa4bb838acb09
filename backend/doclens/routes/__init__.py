"""DocLens API routers."""

from doclens.routes.auth import router as auth_router
from doclens.routes.credits import router as credits_router
from doclens.routes.payments import router as payments_router
from doclens.routes.webhooks import router as webhooks_router
from doclens.routes.proxy import router as proxy_router
from doclens.routes.admin import router as admin_router
from doclens.routes.files import router as files_router
from doclens.routes.chatbot import router as chatbot_router

all_routers = [
    auth_router,
    credits_router,
    payments_router,
    webhooks_router,
    proxy_router,
    admin_router,
    files_router,
    chatbot_router,
]
