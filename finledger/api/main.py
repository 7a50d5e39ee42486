"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from finledger.api.dependencies import get_request_id
from finledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from finledger.api.v1 import accounts, financings, investments, transactions
from finledger.domain.exceptions import (
    DomainException,
    InstallmentAlreadyPaid,
    InsufficientQuantity,
    InvalidOperation,
    InvariantViolation,
    NotFound,
    OverPayment,
)
from finledger.infrastructure.observability.logging import setup_logging
from finledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)

# Most specific first
ERROR_STATUS = [
    (NotFound, 404),
    (InstallmentAlreadyPaid, 409),
    (InvalidOperation, 422),
    (InsufficientQuantity, 422),
    (OverPayment, 422),
    (InvariantViolation, 500),
]


def status_for(error: DomainException) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 400


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Map domain error kinds to client-facing responses"""
    status_code = status_for(exc)
    detail = "Internal server error" if status_code >= 500 else str(exc)
    if status_code >= 500:
        logging.error(f"Invariant violation: {exc}", extra={"request_id": get_request_id(request)})

    body = {"detail": detail, "kind": exc.kind}
    if isinstance(exc, InsufficientQuantity):
        body["asset_name"] = exc.asset_name
        body["shortfall"] = str(exc.shortfall)
    return JSONResponse(status_code=status_code, content=body)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="FinLedger",
        description="Account ledger, investment positions and financing amortization",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(investments.router, prefix="/v1", tags=["investments"])
    app.include_router(financings.router, prefix="/v1", tags=["financings"])

    return app


app = create_app()
