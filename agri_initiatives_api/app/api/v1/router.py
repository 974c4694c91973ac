"""
Top‑level router for version 1 of the API.

This router aggregates the domain routers.  When new endpoints are
added, update this file to include their routers.
"""

from fastapi import APIRouter

from .endpoints import auth, health, initiatives, statistics

router = APIRouter()

router.include_router(health.router, tags=["health"])
# Auth routes define their own paths (/signup, /login, /users/me).
router.include_router(auth.router, tags=["auth"])
router.include_router(initiatives.router, prefix="/initiatives", tags=["initiatives"])
router.include_router(statistics.router, prefix="/statistics", tags=["statistics"])
