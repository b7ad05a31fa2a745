"""Form generation API."""
from formcraft.web.api.forms.views import router

__all__ = ["router"]
