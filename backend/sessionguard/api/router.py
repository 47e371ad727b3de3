"""SessionGuard API Router - aggregates all API routes."""

from fastapi import APIRouter

from sessionguard.api import admin_tokens, resources

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(prefix="/api")

# Include routers
api_router.include_router(admin_tokens.router)
api_router.include_router(resources.router)
