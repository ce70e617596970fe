from .auth import router as auth_router
from .calendar import router as calendar_router
from .payments import router as payments_router
from .webhooks import router as webhooks_router

__all__ = ["auth_router", "calendar_router", "payments_router", "webhooks_router"]
