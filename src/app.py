"""Storefront FastAPI application.

Serves the cart, checkout, order and stock operations over HTTP. The caller's
identity arrives as ``X-User-Id`` / ``X-User-Role`` headers set by the auth
gateway.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the domain.toml overlay (and so the database provider).
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from identity.api import router as profile_router
from inventory.api import inventory_admin_router, stock_router
from ordering.api import admin_router, cart_router, order_router
from shared.config import Settings
from shared.domain import storefront
from shared.errors import (
    DuplicateRow,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    PlacementIncomplete,
    StorefrontError,
    UpstreamFailure,
    ValidationError,
)
from shared.logging import add_context, clear_context, configure_logging

# Elements register when the routers import their services, so there is
# no package to traverse.
storefront.init(traverse=False)

logger = structlog.get_logger(__name__)

# Most specific class wins; see _status_for
_STATUS_CODES = {
    NotAuthenticated: 401,
    PermissionDenied: 403,
    NotFound: 404,
    DuplicateRow: 409,
    ValidationError: 422,
    PlacementIncomplete: 502,
    UpstreamFailure: 503,
    StorefrontError: 500,
}
# InsufficientStock is a ValidationError but reported as a conflict
_STATUS_BY_KIND = {"insufficient_stock": 409}


def _status_for(exc: StorefrontError) -> int:
    if exc.kind in _STATUS_BY_KIND:
        return _STATUS_BY_KIND[exc.kind]
    for cls in type(exc).__mro__:
        if cls in _STATUS_CODES:
            return _STATUS_CODES[cls]
    return 500


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Cart, checkout and order consistency core",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def configure_app_logging() -> None:
    configure_logging(Settings.from_domain(storefront).log_dir or None)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context and bind the request to its log lines."""
    add_context(path=request.url.path, method=request.method, user_id=request.headers.get("x-user-id"))
    try:
        with storefront.domain_context():
            response = await call_next(request)
        return response
    finally:
        clear_context()


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("Request failed", error=exc.kind, messages=exc.messages, status_code=status_code)
    else:
        logger.info("Request rejected", error=exc.kind, status_code=status_code)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(admin_router)
app.include_router(stock_router)
app.include_router(inventory_admin_router)
app.include_router(profile_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "env": Settings.from_domain(storefront).env,
            "providers": {name: provider.conn_info["provider"] for name, provider in storefront.providers.items()},
        }
    )
