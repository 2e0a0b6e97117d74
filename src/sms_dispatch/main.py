"""
Module: main.py
Description: FastAPI application entry point for the SMS dispatch API.

Initializes the FastAPI application with all routes and error handlers,
and exposes the Mangum handler used by API Gateway.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum

from sms_dispatch.config.settings import settings
from sms_dispatch.errors import SmsDispatchError
from sms_dispatch.handlers.recovery import router as recovery_router
from sms_dispatch.handlers.sms_requests import router as sms_requests_router
from sms_dispatch.storage.dynamodb import get_store
from sms_dispatch.utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Flight SMS Dispatch API",
    description="Enqueue, inspect and recover flight notification SMS deliveries",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(recovery_router)
app.include_router(sms_requests_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "message": "SMS dispatch API is healthy",
        "version": settings.app_version,
        "environment": settings.stage
    }


@app.exception_handler(SmsDispatchError)
async def dispatch_error_handler(request: Request, exc: SmsDispatchError):
    """Map service errors to structured error responses."""
    logger.warning(
        "Request failed",
        code=exc.code,
        status_code=exc.status_code,
        message=exc.message,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.status_code,
                "message": exc.message,
                "type": exc.code.lower()
            }
        }
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Log HTTP exceptions and return structured error responses."""
    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.status_code,
                "message": exc.detail,
                "type": "http_exception"
            }
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected exceptions and return a generic error response."""
    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": 500,
                "message": "Internal server error",
                "type": "internal_error"
            }
        }
    )


@app.on_event("startup")
async def startup_event():
    """Create the process-wide store once, at startup."""
    get_store()
    logger.info(
        "Starting SMS dispatch API",
        version=settings.app_version,
        stage=settings.stage,
        region=settings.aws_region
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down SMS dispatch API")


# Lambda handler
handler = Mangum(app, lifespan="off")
