"""Threadworks FastAPI application.

Web server for the order-review, design-approval and payment-reconciliation
workflow. Commands are processed synchronously per request; every request
runs inside the orders domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → event_processing = "sync"  (projectors fire in UoW)
#   - "production" → event_processing = "async" (projectors fire via Engine)
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orders.domain import orders  # noqa: E402
from orders.utils.logging import add_context, clear_context

orders.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Threadworks API",
    description="Custom embroidery orders: design review, picture replies and payment reconciliation",
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
    """Push the orders domain context and bind a request id for log correlation."""
    clear_context()
    add_context(request_id=request.headers.get("X-Request-Id") or uuid4().hex, path=request.url.path)
    with orders.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from orders.api import order_review_router, payment_router, register_error_handlers  # noqa: E402

app.include_router(order_review_router)
app.include_router(payment_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "orders": {"name": orders.name},
            },
        }
    )
