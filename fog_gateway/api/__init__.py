from .status import create_status_app, create_status_router

__all__ = ["create_status_app", "create_status_router"]
