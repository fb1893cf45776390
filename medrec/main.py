# medrec/main.py

import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from medrec.core.config import settings
from medrec.core.database import AsyncSessionLocal, init_db, test_connection
from medrec.core.exceptions import AppError
from medrec.core.rate_limiter import limiter
from medrec.services.user_service import ensure_super_admin

# Routers
from medrec.api.endpoints import (
    auth as auth_router,
    users as users_router,
    patients as patients_router,
    departments as departments_router,
    encounters as encounters_router,
    clinical_notes as clinical_notes_router,
    orders as orders_router,
    messages as messages_router,
    data_quality as data_quality_router,
    logs as logs_router,
    metrics as metrics_router,
)

# ------------------------------------------------------------
# LOGURU CONFIGURATION
# ------------------------------------------------------------
logger.remove()
logger.add(
    sys.stdout,
    level=settings.LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
           "<level>{level}</level> | "
           "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
           "<level>{message}</level>",
    colorize=True,
    backtrace=True,
    diagnose=settings.ENV != "prod",
)

# ------------------------------------------------------------
# FASTAPI APP INIT
# ------------------------------------------------------------
app = FastAPI(
    title="Medical Records Backend",
    version="1.0.0",
    description="Patient records, encounters, orders and results behind role-based access control and audit logging.",
)

app.state.limiter = limiter


# ------------------------------------------------------------
# ERROR ENVELOPE: {"success": false, "message": ..., "code": ...}
# ------------------------------------------------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation failed",
            "code": "VALIDATION_ERROR",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": f"Too many requests: {exc.detail}",
            "code": "RATE_LIMITED",
        },
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=409,
        content={
            "success": False,
            "message": "The change conflicts with existing data",
            "code": "CONFLICT",
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "code": "INTERNAL_ERROR"},
    )


# ------------------------------------------------------------
# CORS CONFIGURATION
# ------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

# ------------------------------------------------------------
# REGISTER ROUTERS
# ------------------------------------------------------------
app.include_router(auth_router.router)
app.include_router(users_router.router)
app.include_router(patients_router.router)
app.include_router(departments_router.router)
app.include_router(encounters_router.router)
app.include_router(clinical_notes_router.router)
app.include_router(orders_router.lab_router)
app.include_router(orders_router.radiology_router)
app.include_router(messages_router.router)
app.include_router(data_quality_router.router)
app.include_router(logs_router.router)
app.include_router(metrics_router.router)


# ------------------------------------------------------------
# APPLICATION STARTUP EVENTS
# ------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    logger.info("Starting Medical Records Backend...")

    # 1) Database connection test
    try:
        await test_connection()
        logger.success("Database connection established.")
    except Exception:
        logger.exception("Startup aborted: Database connection failed.")
        return

    # 2) Initialize database tables
    await init_db()
    logger.success("Database tables ready.")

    # 3) Seed Super Admin
    if not settings.SUPER_ADMIN_EMAIL or not settings.SUPER_ADMIN_PASSWORD:
        logger.warning("Missing Super Admin credentials in settings.")
    else:
        try:
            async with AsyncSessionLocal() as session:
                admin = await ensure_super_admin(
                    session,
                    settings.SUPER_ADMIN_EMAIL,
                    settings.SUPER_ADMIN_PASSWORD,
                    settings.SUPER_ADMIN_NAME or "Super Admin",
                )
                logger.info(f"Super Admin ready: {admin.email}")
        except Exception:
            logger.exception("Super Admin seeding failed.")

    logger.success("Backend startup completed successfully.")


# ------------------------------------------------------------
# ROOT HEALTH CHECK
# ------------------------------------------------------------
@app.get("/", tags=["System"])
async def root():
    return {
        "status": "ok",
        "service": "Medical Records Backend",
        "version": app.version,
        "message": "Backend running successfully",
    }
