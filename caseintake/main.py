"""
FastAPI application entry point
"""
import asyncio

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from caseintake.api.v1.api import api_router
from caseintake.core.config import settings
from caseintake.core.logger import logger
from caseintake.db.database import SessionLocal, init_db
from caseintake.middleware.correlation import CorrelationMiddleware
from caseintake.services.rate_limiter import delete_expired_windows
from caseintake.utils.exceptions import IntakeAPIError

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(api_router, prefix="/api/v1")

# ── Correlation ID middleware (must be added before CORS) ─────────────────────
app.add_middleware(CorrelationMiddleware)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-correlation-id"],
    expose_headers=[
        "X-Correlation-ID",
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "X-RateLimit-Reset",
        "Retry-After",
    ],
)


@app.exception_handler(IntakeAPIError)
async def intake_api_error_handler(request: Request, exc: IntakeAPIError):
    return JSONResponse(status_code=exc.http_status, content=exc.to_body(), headers=exc.headers)


@app.get("/")
def read_root():
    logger.info("Root endpoint accessed")
    return {"message": "Case Intake API is running", "version": "1.0.0"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}


# ── Scheduled loops ───────────────────────────────────────────────────────────

async def _rate_limit_cleanup_loop() -> None:
    """Delete expired api_rate_limits windows every hour."""
    if not settings.RATE_LIMIT_CLEANUP_ENABLED:
        logger.info("Rate-limit window cleanup disabled")
        return

    while True:
        try:
            await asyncio.sleep(3600)
            db = SessionLocal()
            try:
                deleted = delete_expired_windows(db, settings.RATE_LIMIT_RETENTION_HOURS)
                if deleted:
                    logger.info("rate_limit_cleanup: deleted %d expired windows", deleted)
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        except asyncio.CancelledError:
            break
        except Exception:
            logger.exception("_rate_limit_cleanup_loop crashed")
            await asyncio.sleep(60)


# ── Startup / Shutdown ────────────────────────────────────────────────────────

@app.on_event("startup")
async def startup_event():
    logger.info("Case Intake API started")
    if settings.DEBUG:
        # Development databases only; production schemas are managed separately
        init_db()
    app.state.rate_limit_cleanup_task = asyncio.create_task(_rate_limit_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Case Intake API shutdown")
    task = getattr(app.state, "rate_limit_cleanup_task", None)
    if task is not None:
        task.cancel()
