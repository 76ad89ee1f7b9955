from fastapi import APIRouter

from workorder_engine.api.routes import executions, parts, scheduling, work_orders

api_router = APIRouter()
api_router.include_router(work_orders.router)
api_router.include_router(executions.router)
api_router.include_router(parts.router)
api_router.include_router(scheduling.router)
