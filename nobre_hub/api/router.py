"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from nobre_hub.api.round_robin import router as round_robin_router
from nobre_hub.api.public import router as public_router
from nobre_hub.api.permissions import router as permissions_router
from nobre_hub.api.notifications import router as notifications_router
from nobre_hub.api.leads import router as leads_router
from nobre_hub.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(round_robin_router)
api_router.include_router(public_router)
api_router.include_router(permissions_router)
api_router.include_router(notifications_router)
api_router.include_router(leads_router)
api_router.include_router(health_router)
