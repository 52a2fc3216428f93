from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from salesflow.business.billing.api import router as invoices_router
from salesflow.business.catalog.api import router as products_router
from salesflow.business.revenue.api import router as quotations_router
from salesflow.core.auth import AuthUser, get_current_user
from salesflow.core.config import get_settings
from salesflow.crm.api import (
    customers_router,
    employees_router,
    leads_router,
    opportunities_router,
    tickets_router,
)
from salesflow.metrics import generate_metrics_payload, metrics_content_type

router = APIRouter()
router.include_router(customers_router)
router.include_router(employees_router)
router.include_router(leads_router)
router.include_router(opportunities_router)
router.include_router(tickets_router)
router.include_router(products_router)
router.include_router(quotations_router)
router.include_router(invoices_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str | list[str]]:
    return {
        "sub": user.sub,
        "roles": user.roles,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
