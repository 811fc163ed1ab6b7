from commerce.api.errors import register_error_handlers
from commerce.api.routes import orders_router, stock_router

__all__ = ["orders_router", "stock_router", "register_error_handlers"]
