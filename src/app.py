"""Marketplace checkout FastAPI application.

Serves the storefront UI's cart and checkout calls. Cart and checkout
requests run inside the ordering domain context so aggregates can be
created and raise events.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

import structlog
from catalogue.domain import catalogue
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from ordering.domain import ordering
from ordering.utils.logging import bind_request_context, clear_request_context, configure_logging

configure_logging()
catalogue.init()
ordering.init()

logger = structlog.get_logger(__name__)

_ORDERING_PREFIXES = ("/cart", "/checkout")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield

    from ordering.runtime import get_runtime

    # REST adapters own an httpx client each
    with ordering.domain_context():
        runtime = get_runtime()
    for adapter in (runtime.catalog, runtime.orders, runtime.payments, runtime.shipping):
        close = getattr(adapter, "aclose", None)
        if close is not None:
            await close()
    logger.info("Checkout service stopped")


app = FastAPI(
    title="Marketplace Checkout API",
    description="Cart reconciliation, order creation and payment confirmation",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Bind request details to the log context and enter the ordering domain."""
    clear_request_context()
    bind_request_context(method=request.method, path=request.url.path)
    if request.url.path.startswith(_ORDERING_PREFIXES):
        with ordering.domain_context():
            return await call_next(request)
    return await call_next(request)


from ordering.api import cart_router, checkout_router  # noqa: E402

app.include_router(cart_router)
app.include_router(checkout_router)


@app.get("/health")
async def health():
    from ordering.runtime import get_runtime

    with ordering.domain_context():
        runtime = get_runtime()
    return JSONResponse(
        content={
            "status": "ok",
            "domains": [catalogue.name, ordering.name],
            "adapters": {
                "catalog": type(runtime.catalog).__name__,
                "orders": type(runtime.orders).__name__,
                "payments": type(runtime.payments).__name__,
                "gateway": type(runtime.gateway).__name__,
                "shipping": type(runtime.shipping).__name__,
                "storage": type(runtime.storage).__name__,
            },
        }
    )
