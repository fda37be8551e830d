"""
FastAPI application entry point with health check and metrics routes.
"""
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from hvac_dispatch.api.routes import technicians, teams, bookings, pricing, admin_revenue
from hvac_dispatch.api.middleware.error_handler import (
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
)
from hvac_dispatch.lib.errors import AppException
from hvac_dispatch.lib.logging import get_logger, set_correlation_id
from hvac_dispatch.lib.metrics import get_metrics_collector
from hvac_dispatch.lib.settings import settings

logger = get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Accepts X-Correlation-ID from incoming requests or generates one, and
    makes it available to route handlers (request.state) and to every log
    line written while the request is served.
    """
    
    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)
        
        logger.info(
            "Incoming request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else None,
            },
        )
        
        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            logger.info("Response sent", extra={"status_code": response.status_code})
            return response
        finally:
            set_correlation_id(None)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup/shutdown events.
    """
    logger.info(f"{settings.app_name} starting up...")
    yield
    logger.info(f"{settings.app_name} shutting down...")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Technician matching, booking lifecycle, pricing and revenue APIs",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",  # Vite dev server
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)


app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


app.include_router(technicians.router)
app.include_router(teams.router)
app.include_router(bookings.router)
app.include_router(pricing.router)
app.include_router(admin_revenue.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint():
    """
    Prometheus-compatible metrics endpoint.
    
    Metrics exposed:
    - booking_transitions_total: Booking status changes by from/to status
    - technician_assignments_total: Jobs registered on technicians
    - revenue_records_total: Revenue ledger entries by service type
    - recommendation_requests_total: Matching engine calls
    """
    return PlainTextResponse(
        content=get_metrics_collector().export_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
