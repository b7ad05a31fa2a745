from fastapi.routing import APIRouter

from formcraft.web.api import forms, monitoring

api_router = APIRouter()
api_router.include_router(monitoring.router)
api_router.include_router(forms.router, prefix="/forms", tags=["forms"])
