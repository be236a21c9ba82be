"""
Router principal da API v1.

Inclui todos os routers de endpoints.
"""

from fastapi import APIRouter

from reservation_engine.api.v1.inventory import router as inventory_router
from reservation_engine.api.v1.reservations import router as reservations_router
from reservation_engine.api.v1.system import router as system_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(reservations_router)
api_router.include_router(inventory_router)
api_router.include_router(system_router)
