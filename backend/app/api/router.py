from fastapi import APIRouter

from app.api.routes import bids, health, pooled_orders, suppliers

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(pooled_orders.router)
api_router.include_router(bids.router)
api_router.include_router(suppliers.router)
