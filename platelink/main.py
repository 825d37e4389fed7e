# platelink/main.py
"""
FastAPI application entry point.
Includes security middleware, domain + global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from platelink.routers import users, vehicles, contacts, ledger, referrals, activity, health
from platelink.services.backend import get_backend, purge_expired_keys
from platelink.config import settings
from platelink.errors import PlateLinkError
from platelink.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="PlateLink API",
    description="Plate lookup, masked owner contact, and credit ledger.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to the app's origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Domain Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(PlateLinkError)
async def domain_exception_handler(request: Request, exc: PlateLinkError):
    if exc.status_code >= 500:
        logger.error(f"{request.url.path}: {exc.reason}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.reason}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "reason": exc.reason},
    )


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(users.router,     prefix="/api/v1", tags=["Users"])
app.include_router(vehicles.router,  prefix="/api/v1", tags=["Vehicles"])
app.include_router(contacts.router,  prefix="/api/v1", tags=["Contacts"])
app.include_router(ledger.router,    prefix="/api/v1", tags=["Ledger"])
app.include_router(referrals.router, prefix="/api/v1", tags=["Referrals"])
app.include_router(activity.router,  prefix="/api/v1", tags=["Activity"])
app.include_router(health.router,    prefix="/api/v1", tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("PlateLink backend starting up...")
    backend = app.dependency_overrides.get(get_backend, get_backend)()
    logger.info(f"Storage ready ({backend.kind})")
    purge_expired_keys(backend)
    logger.info(f"Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")
    logger.info("API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("PlateLink backend shutting down...")
