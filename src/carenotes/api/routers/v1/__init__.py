"""API v1 routers."""

from fastapi import APIRouter

from .audit import router as audit_router
from .beds import router as beds_router
from .residents import router as residents_router
from .resources import create_resource_router

# v1 router that includes all v1 endpoints
router = APIRouter(prefix="/api/v1")

router.include_router(residents_router)
router.include_router(beds_router)
router.include_router(audit_router)

__all__ = [
    "audit_router",
    "beds_router",
    "create_resource_router",
    "residents_router",
    "router",
]
