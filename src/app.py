"""OrderDesk FastAPI application.

Processes fulfillment order commands synchronously over HTTP. Every
request under /fulfillment runs inside the orderdesk domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# PROTEAN_ENV selects the domain.toml overlay:
#   - "test"       → event_processing = "sync"  (projectors fire in UoW)
#   - "production" → event_processing = "async" (projectors fire via Engine)
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orderdesk.domain import orderdesk
from orderdesk.utils.logging import configure_logging

configure_logging()
orderdesk.init()

_DOMAIN_PREFIX = "/fulfillment"

app = FastAPI(
    title="OrderDesk API",
    description="Fulfillment order lifecycle, 3PL handshake and bulk operations",
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
    """Push the orderdesk domain context for fulfillment routes."""
    if request.url.path.startswith(_DOMAIN_PREFIX):
        with orderdesk.domain_context():
            response = await call_next(request)
        return response
    # health check, docs
    return await call_next(request)


from orderdesk.api.errors import register_error_handlers  # noqa: E402
from orderdesk.api.routes import router  # noqa: E402

register_error_handlers(app)
app.include_router(router)


@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": orderdesk.name})
