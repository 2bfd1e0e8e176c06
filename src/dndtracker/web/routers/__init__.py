from dndtracker.web.routers.auth import router as auth_router
from dndtracker.web.routers.users import router as users_router

__all__ = [
    "auth_router",
    "users_router",
]
