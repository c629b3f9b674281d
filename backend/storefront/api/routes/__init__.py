from storefront.api.routes.chat import router as chat
from storefront.api.routes.health import router as health

__all__ = ["chat", "health"]
