from fastapi import APIRouter

from merenda.app.api.v1.endpoints.health import router as health_router
from merenda.app.api.v1.endpoints.orders import router as orders_router
from merenda.app.api.v1.endpoints.receipts import router as receipts_router
from merenda.app.api.v1.endpoints.stock import router as stock_router
from merenda.app.api.v1.endpoints.stock_movements import router as stock_movements_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(orders_router, tags=["orders"])
router.include_router(receipts_router, tags=["receipts"])
router.include_router(stock_router, tags=["stock"])
router.include_router(stock_movements_router, tags=["stock_movements"])
