from api.src.routes.health import router as health_router
from api.src.routes.stands import router as stands_router
from api.src.routes.notifications import router as notifications_router
from api.src.routes.products import router as products_router

__all__ = ["health_router", "stands_router", "notifications_router", "products_router"]
