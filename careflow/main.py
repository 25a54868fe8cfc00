import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_encounter,  # noqa: F401
)
from .database import Base, engine
from .domain.encounters.router import router as encounters_router
from .domain.flows.router import router as flows_router
from .errors import (
    AuthorizationError,
    CareFlowError,
    InvalidOrderType,
    InvalidStatusTransition,
    NotFoundError,
    ProtectedEncounterError,
    StoreError,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


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

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Care-Flow API", version="1.0.0", lifespan=lifespan)

# Most specific first; anything else that is a CareFlowError is a bad request
ERROR_STATUS_CODES = (
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (StoreError, 500),
    (ProtectedEncounterError, 409),
    (InvalidOrderType, 400),
    (InvalidStatusTransition, 400),
)


def status_code_for(exc: CareFlowError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            return status_code
    return 400


@app.exception_handler(CareFlowError)
async def care_flow_exception_handler(request: Request, exc: CareFlowError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"⚠️ {request.method} {request.url.path} rejected ({status_code}): {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
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

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


app.include_router(encounters_router)
app.include_router(flows_router)


@app.get("/")
def root():
    return {"message": "Care-Flow API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
