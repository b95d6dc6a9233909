from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.v1.api import api_router
from app.core.config import settings
from app.core.database import init_database
from app.core.logging import setup_logging, get_logger
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.identity_interceptor import IdentityInterceptorMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from app.core.exceptions import (
    http_exception_handler,
    request_validation_exception_handler,
    integrity_error_handler,
    sqlalchemy_error_handler,
    unhandled_exception_handler,
)

# Import all models so metadata is complete before any database operation
import app.models  # noqa: F401

setup_logging()
logger = get_logger("main")


@asynccontextmanager
async def lifespan(application: FastAPI):
    init_database()
    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} started")
    yield
    logger.info(f"{settings.PROJECT_NAME} shutting down")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Access-controlled encrypted file store with audit logging",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Middleware (first added is innermost)
app.add_middleware(
    IdentityInterceptorMiddleware,
    skip_paths=["/health", "/docs", "/redoc", f"{settings.API_V1_STR}/openapi.json"],
)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Content-Hash", "X-Access-Reason"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Exception handlers
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)
app.add_exception_handler(SQLAlchemyError, sqlalchemy_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)
