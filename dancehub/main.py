import logging
import os
from contextlib import asynccontextmanager

import stripe
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .cache import cache
from .config import FRONTEND_URL
from .database import Base, engine
from .domain.booking.router import router as booking_router
from .domain.onboarding.router import community_router
from .domain.onboarding.router import router as onboarding_router
from .domain.scheduling.router import router as scheduling_router
from .shared.errors import DanceHubError, GatewayError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("stripe").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    if cache.is_available():
        logger.info("Redis connection established")
    else:
        logger.warning("Redis unavailable - onboarding progress will not be stored server-side")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="DanceHub API", version="1.0.0", lifespan=lifespan)


# Every error body is {"error": message}, which is what the API client reads
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(status_code=exc.status_code or 502, content={"error": exc.message})


@app.exception_handler(DanceHubError)
async def dancehub_error_handler(request: Request, exc: DanceHubError):
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(stripe.StripeError)
async def stripe_error_handler(request: Request, exc: stripe.StripeError):
    logger.error(f"❌ Unhandled Stripe error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=getattr(exc, "http_status", None) or 500,
        content={"error": exc.user_message or "Payment provider error"},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    first = exc.errors()[0] if exc.errors() else {}
    return JSONResponse(
        status_code=422,
        content={"error": first.get("msg", "Invalid request"), "detail": jsonable_errors(exc)},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000").split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(community_router)
app.include_router(onboarding_router)
app.include_router(scheduling_router)
app.include_router(booking_router)


@app.get("/")
def root():
    return {"message": "DanceHub API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
def redis_health_check():
    """Check Redis connectivity for monitoring"""
    if cache.is_available():
        return {"status": "healthy", "redis": {"connected": True}}
    return {"status": "unhealthy", "redis": {"connected": False}}
