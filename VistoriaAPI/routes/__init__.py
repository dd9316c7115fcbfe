from .auth import router as auth_router
from .properties import router as properties_router
from .inspections import router as inspections_router
from .uploads import router as uploads_router
from .reports import router as reports_router
from .users import router as users_router
from .admin import router as admin_router
from .settings import router as settings_router

# You can list all the routers here
__all__ = [
    "auth_router",
    "properties_router",
    "inspections_router",
    "uploads_router",
    "reports_router",
    "users_router",
    "admin_router",
    "settings_router",
]
