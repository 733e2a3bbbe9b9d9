"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from adera_backend.app.api.v1.endpoints import parcels

router = APIRouter()

router.include_router(parcels.router)
