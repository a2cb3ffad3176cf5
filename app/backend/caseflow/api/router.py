"""Top-level API router."""

from fastapi import APIRouter

from caseflow.api.routes.admin import router as admin_router
from caseflow.api.routes.allocations import router as allocations_router
from caseflow.api.routes.billing import router as billing_router
from caseflow.api.routes.health import router as health_router
from caseflow.api.routes.me import router as me_router
from caseflow.api.routes.payouts import router as payouts_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(allocations_router)
api_router.include_router(admin_router)
api_router.include_router(payouts_router)
api_router.include_router(billing_router)
