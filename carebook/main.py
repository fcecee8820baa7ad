import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .config import RATE_LIMIT_ENABLED
from .database import Base, SessionLocal, engine
from .domain.appointments.router import router as appointments_router
from .domain.booking.router import router as booking_router
from .domain.providers.router import router as providers_router
from .errors import CareBookError, ValidationError
from .routes.auth import router as auth_router
from .utils.admin_setup import ensure_admin

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)
error_logger = logging.getLogger("carebook.errors")

for noisy in ("httpx", "httpcore"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


def create_tables() -> None:
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
    except Exception as e:
        # Another worker won the race to create the schema
        if "already exists" not in str(e) and "duplicate key" not in str(e):
            logger.error(f"❌ Failed to create database tables: {e}")
            raise
        logger.info("Database tables already exist")
    else:
        logger.info("✅ Database tables ready")


def probe_rate_limiter() -> None:
    from .rate_limiter import get_redis_client

    try:
        get_redis_client()
    except Exception as e:
        logger.warning(f"⚠️ Redis unavailable, logins will be refused until it recovers: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 CareBook API starting up...")
    create_tables()

    db = SessionLocal()
    try:
        ensure_admin(db)
    finally:
        db.close()

    if RATE_LIMIT_ENABLED:
        probe_rate_limiter()

    yield
    logger.info("CareBook API shutting down...")


app = FastAPI(title="CareBook API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(CareBookError)
async def carebook_error_handler(request: Request, exc: CareBookError):
    """Map domain errors to their HTTP status; expected outcomes log quieter than misuse"""
    level = logging.INFO if exc.expected else logging.WARNING
    error_logger.log(level, f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    headers = {}
    redirect = exc.context.get("redirect")
    if redirect:
        headers["X-Redirect-To"] = redirect
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers or None)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request body/query problems in the same {field: message} shape as domain validation"""
    field_errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = loc[0] if loc else "__root__"
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        field_errors.setdefault(field, message)

    error_logger.info(f"Validation error for {request.url.path}: {field_errors}")
    return JSONResponse(status_code=422, content=ValidationError(field_errors).to_dict())


# Frontend origins, comma separated
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Redirect-To", "Retry-After"],
)


app.include_router(auth_router)
app.include_router(providers_router)
app.include_router(booking_router)
app.include_router(appointments_router)


@app.get("/")
def root():
    return {"message": "CareBook API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
