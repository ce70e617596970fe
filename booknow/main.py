import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import ALLOWED_ORIGINS
from .database import init_db
from .domain import availability, bookings, categories, consultation_types, logs
from .error_logging import install_error_log_handler
from .routes import auth_router, calendar_router, payments_router, webhooks_router
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"

API_PREFIX = "/book-now/v1"
ADMIN_PREFIX = f"{API_PREFIX}/admin"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    init_db()
    install_error_log_handler()

    try:
        from .rate_limiter import get_redis_client

        if get_redis_client() is not None:
            logger.info("Redis connection established")
        else:
            logger.info("Redis not configured - rate limiting uses process memory only")
    except Exception as e:
        logger.warning(f"Redis connection failed - rate limiting falls back to process memory: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Book Now API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Report request validation failures as 400 invalid_params, except for a
    missing or malformed Authorization header which is a 401
    """
    errors = exc.errors()
    for error in errors:
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {errors}")
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid parameter: {field}" if field else "Invalid request parameters"
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "code": "invalid_params",
                "message": message,
                "errors": [
                    {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                    for e in errors
                ],
            }
        },
    )


@app.middleware("http")
async def rate_limit_headers(request: Request, call_next):
    """Copy the counters left by the rate limiter onto the response"""
    response = await call_next(request)
    limit = getattr(request.state, "rate_limit_limit", None)
    if limit is not None:
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(request.state.rate_limit_remaining)
        response.headers["X-RateLimit-Reset"] = str(request.state.rate_limit_reset)
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials="*" not in ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
)

# Public routes
app.include_router(categories.router, prefix=API_PREFIX)
app.include_router(consultation_types.router, prefix=API_PREFIX)
app.include_router(availability.router, prefix=API_PREFIX)
app.include_router(bookings.router, prefix=API_PREFIX)
app.include_router(webhooks_router, prefix=API_PREFIX)

# Admin routes
app.include_router(auth_router, prefix=ADMIN_PREFIX)
app.include_router(categories.admin_router, prefix=ADMIN_PREFIX)
app.include_router(consultation_types.admin_router, prefix=ADMIN_PREFIX)
app.include_router(availability.admin_router, prefix=ADMIN_PREFIX)
app.include_router(bookings.admin_router, prefix=ADMIN_PREFIX)
app.include_router(logs.admin_router, prefix=ADMIN_PREFIX)
app.include_router(payments_router, prefix=ADMIN_PREFIX)
app.include_router(calendar_router, prefix=ADMIN_PREFIX)


@app.get("/")
def root():
    return {"message": "Book Now API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
