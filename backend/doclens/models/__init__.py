"""DocLens data models."""

from doclens.models.user import (
    User,
    UserCreate,
    UserLogin,
    UserResponse,
    TokenResponse,
    SubscriptionStatus,
    DEFAULT_SIGNUP_CREDITS,
)
from doclens.models.stats import (
    DailyStats,
    PageViewSource,
    LogEntry,
    DailyStatsWithSources,
    AdminStatsResponse,
)
from doclens.models.file import (
    FileType,
    StoredFile,
    MAX_FILE_SIZE_BYTES,
)
from doclens.models.chat import ChatMessage, ChatbotRequest, ChatbotResponse
