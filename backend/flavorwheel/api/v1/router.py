from __future__ import annotations

from fastapi import APIRouter

from .endpoints import admin, descriptors, health, taxonomy, wheels

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(descriptors.router, prefix="/descriptors", tags=["descriptors"])
api_router.include_router(taxonomy.router, prefix="/taxonomies", tags=["taxonomies"])
api_router.include_router(wheels.router, prefix="/wheels", tags=["wheels"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
