"""Storefront FastAPI application.

Serves checkout, the payment and fulfillment webhooks, order lookups and
connect onboarding. Every request under /store runs inside the storefront
domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level. Providers are in memory and
# domain events are handled in this process (see storefront/domain.toml), so
# run a single worker.
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers
from storefront.domain import storefront
from storefront.utils.logging import configure_logging

configure_logging()
storefront.init()

_DOMAIN_PREFIXES = ("/store",)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    from storefront.fulfillment.provider.registration import registrar

    # Registration is best-effort; a failure is logged and retried on next start
    with storefront.domain_context():
        registrar.ensure_registered()
    yield


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Checkout, payment reconciliation and fulfillment",
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
    """Push the storefront domain context for store requests."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with storefront.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs, etc.
    return await call_next(request)


register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api import store_router  # noqa: E402

app.include_router(store_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domains": {"storefront": {"name": storefront.name}}})
