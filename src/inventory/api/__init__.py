from inventory.api.routes import inventory_admin_router, stock_router

__all__ = ["inventory_admin_router", "stock_router"]
