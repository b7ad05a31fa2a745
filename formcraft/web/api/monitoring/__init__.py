"""API for checking project status."""
from formcraft.web.api.monitoring.views import router

__all__ = ["router"]
