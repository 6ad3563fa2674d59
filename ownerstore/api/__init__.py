"""HTTP API for ownerstore."""

from ownerstore.api.routes import caller_identity, create_app, create_secret_router

__all__ = ["caller_identity", "create_app", "create_secret_router"]
