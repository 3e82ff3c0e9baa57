import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.errors import install_error_handlers
from core.logging_setup import setup_logging
from core.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware
from db.database import init_db

from routers import auth, tasks, stats, admin

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger("countdown")

app = FastAPI(title="Countdown Challenge API")

STARTED_AT = time.time()

# --- rate limit: per client IP, /api/ only ---
app.state.rate_limiter = FixedWindowRateLimiter(
    max_requests=settings.RATE_LIMIT_MAX,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)
app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response


# --- routers ---
app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(stats.router)
app.include_router(admin.router)


@app.on_event("startup")
def _startup():
    init_db()


@app.get("/health")
def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.time() - STARTED_AT, 2),
    }


# cold-start probe: touches neither the database nor the rate limiter
@app.get("/ping", include_in_schema=False)
def ping():
    return {
        "ok": True,
        "service": "countdown-backend",
        "ts": datetime.now(timezone.utc).isoformat(),
    }
