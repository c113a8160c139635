"""
FastAPI Sandbox Entry Point

Tableside Ordering - local Order Service
Serves the ordering backend's REST contract over the in-memory
MockOrderService so diner and staff flows (and scripts/simulate.py) can run
end to end without the real backend.

Endpoints:
    - POST   /api/orders: Create an order from a cart
    - GET    /api/orders/table/{restaurant_id}/{table_id}: Table's last order
    - GET    /api/owner/orders: Staff list (status / table_id / date filters)
    - GET    /api/owner/orders/{order_id}: Single order
    - PATCH  /api/owner/orders/{order_id}/status: Status transition
    - DELETE /api/owner/orders/{order_id}: Delete a pending/cancelled order
    - GET    /api/owner/orders/{order_id}/invoice: Printable HTML invoice
    - GET    /health: Health check

Rejections use the backend's envelope:
    {"success": false, "message": "...", "errors": {"field": "..."}}

Run:
    uvicorn tableside.main:app --port 8001

Version: 1.0.0
"""

import datetime as dt
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from tableside.core.config import get_settings, setup_logging
from tableside.core.exceptions import (
    OrderingError,
    ServerRejectedError,
    UnknownStatusError,
)
from tableside.invoice import render_invoice
from tableside.normalize import normalize_order
from tableside.registry import parse_status
from tableside.schemas import OrderCreateRequest, OrderFilters, StatusUpdateRequest
from tableside.services.orders import BaseOrderService, MockOrderService

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


@lru_cache()
def get_sandbox_service() -> BaseOrderService:
    """The in-memory store behind the sandbox. Never fails on purpose."""
    return MockOrderService(failure_rate=0.0, envelope="laravel")


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name} sandbox")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    service = get_sandbox_service()
    logger.info(f"✅ Order Service: {service.provider_name}")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await service.close()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=f"{settings.app_name} Sandbox",
    description=(
        "In-memory implementation of the ordering backend's REST contract "
        "for local diner and staff sessions."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api = APIRouter(prefix="/api")


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get("/health", tags=["Health"], summary="Sandbox Health Check")
@api.get("/health", tags=["Health"], include_in_schema=False)
async def health_check(
    service: BaseOrderService = Depends(get_sandbox_service),
) -> dict[str, Any]:
    """Report whether the Order Service answers."""
    healthy = await service.health_check()
    return {
        "status": "operational" if healthy else "degraded",
        "order_service": service.provider_name,
        "environment": settings.env_mode.value,
        "timestamp": datetime.now().isoformat(),
    }


# =============================================================================
# DINER ENDPOINTS
# =============================================================================

@api.post("/orders", status_code=201, tags=["Orders"], summary="Create Order")
async def create_order(
    order_data: OrderCreateRequest,
    service: BaseOrderService = Depends(get_sandbox_service),
) -> Any:
    """Create a pending order from a diner's cart."""
    logger.info(
        f"Creating order for restaurant {order_data.restaurant_id}, "
        f"table {order_data.table_id}"
    )
    return await service.create_order(order_data)


@api.get(
    "/orders/table/{restaurant_id}/{table_id}",
    tags=["Orders"],
    summary="Last Order For Table",
)
async def get_orders_by_table(
    restaurant_id: int,
    table_id: int,
    service: BaseOrderService = Depends(get_sandbox_service),
) -> Any:
    return await service.get_orders_by_table(restaurant_id, table_id)


# =============================================================================
# STAFF ENDPOINTS
# =============================================================================

@api.get("/owner/orders", tags=["Owner"], summary="List Orders")
async def list_orders(
    restaurant_id: int = Query(...),
    status: Optional[str] = Query(None),
    table_id: Optional[int] = Query(None),
    date: Optional[dt.date] = Query(None),
    service: BaseOrderService = Depends(get_sandbox_service),
) -> Any:
    """List a restaurant's orders, newest first."""
    filters = OrderFilters(status=status, table_id=table_id, date=date)
    return await service.get_all_orders(restaurant_id, filters)


@api.get("/owner/orders/{order_id}", tags=["Owner"])
async def get_order(
    order_id: int,
    service: BaseOrderService = Depends(get_sandbox_service),
) -> Any:
    return await service.get_order(order_id)


@api.patch("/owner/orders/{order_id}/status", tags=["Owner"], summary="Update Status")
async def update_order_status(
    order_id: int,
    body: StatusUpdateRequest,
    service: BaseOrderService = Depends(get_sandbox_service),
) -> Any:
    """Apply a status transition; illegal moves are rejected with 422."""
    return await service.update_order_status(order_id, parse_status(body.status))


@api.delete("/owner/orders/{order_id}", tags=["Owner"])
async def delete_order(
    order_id: int,
    service: BaseOrderService = Depends(get_sandbox_service),
) -> Any:
    return await service.delete_order(order_id)


@api.get(
    "/owner/orders/{order_id}/invoice",
    response_class=HTMLResponse,
    tags=["Owner"],
    summary="Printable Invoice",
)
async def order_invoice(
    order_id: int,
    service: BaseOrderService = Depends(get_sandbox_service),
) -> HTMLResponse:
    order = normalize_order(await service.get_order(order_id))
    if order is None:
        raise ServerRejectedError(f"Order #{order_id} not found", 404)
    return HTMLResponse(render_invoice(order, fmt="html"))


app.include_router(api)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def _rejection(status_code: int, message: str, errors: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "errors": errors or {}},
    )


@app.exception_handler(ServerRejectedError)
async def rejected_handler(request: Request, exc: ServerRejectedError) -> JSONResponse:
    return _rejection(exc.status_code or 400, exc.message, exc.field_errors)


@app.exception_handler(UnknownStatusError)
async def unknown_status_handler(request: Request, exc: UnknownStatusError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return _rejection(422, exc.message, {"status": exc.message})


@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return _rejection(400, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report invalid input per field, first message per field."""
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.setdefault(".".join(loc) or "request", error.get("msg", "Invalid value"))
    return _rejection(422, "The given data was invalid.", errors)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
