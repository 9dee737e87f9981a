from identity.api.routes import router

__all__ = ["router"]
