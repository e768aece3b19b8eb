"""HTTP routes package."""

from server.routes.file_routes import api_router, serve_router

__all__ = ["api_router", "serve_router"]
