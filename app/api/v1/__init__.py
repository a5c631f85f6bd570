"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import advances, auth, health, manager, reports, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(advances.router, prefix="/advances", tags=["advances"])
router.include_router(manager.router, prefix="/manager", tags=["manager"])
router.include_router(reports.router, prefix="/reports", tags=["reports"])
