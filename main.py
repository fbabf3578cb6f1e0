"""
Main FastAPI application entry point for Identity Reconciliation System
This file sets up the FastAPI application with its configuration,
middleware, error mapping and endpoints. It serves as the entry point
for both local development and AWS Lambda deployment.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from database import db_manager
from errors import ConsistencyFault, InvalidInput, StorageError
from schemas.identify import IdentifyRequest, IdentifyResponse, ErrorResponse
from services.identity_service import identity_service

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        await db_manager.create_tables()
    yield
    await db_manager.dispose()


# Create FastAPI application instance
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _error(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message, details=details).model_dump(exclude_none=True)
    )


# Exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request body validation errors"""
    logger.warning(f"Validation error for {request.url}: {exc.errors()}")

    error_details = []
    for error in exc.errors():
        error_details.append({
            "field": " -> ".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    return _error(400, "ValidationError", "Request validation failed", {"errors": error_details})


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    logger.warning(f"Invalid input for {request.url}: {exc.message}")
    return _error(400, InvalidInput.code, exc.message)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage failure for {request.url}: {exc.message}", exc_info=exc)
    return _error(500, StorageError.code, "Unable to process identity reconciliation request")


@app.exception_handler(ConsistencyFault)
async def consistency_fault_handler(request: Request, exc: ConsistencyFault):
    logger.error(f"Contact data integrity fault for {request.url}: {exc.message} {exc.details}")
    return _error(500, ConsistencyFault.code, "Unable to process identity reconciliation request")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"message": "Not found"})
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors"""
    logger.error(f"Unexpected error for {request.url}: {exc}", exc_info=exc)
    return _error(500, "InternalServerError", "An unexpected error occurred")


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer health checks
    """
    db_connected = await db_manager.test_connection()

    return {
        "status": "healthy" if db_connected else "degraded",
        "environment": settings.ENVIRONMENT,
        "version": settings.API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "lambda": settings.is_lambda_environment(),
        "database": {
            "status": "connected" if db_connected else "disconnected"
        }
    }


@app.post("/identify", response_model=IdentifyResponse)
async def identify_endpoint(request: IdentifyRequest):
    """
    Main identity reconciliation endpoint

    Links customer identities based on email and/or phone number.
    Returns consolidated contact information including all linked emails,
    phone numbers, and secondary contact IDs.

    **Examples:**
    - New customer: Creates primary contact
    - Existing email + new phone: Creates secondary contact
    - Email known under one primary, phone under another: Links them (older remains primary)
    """
    logger.info(f"Processing identify request: email={request.email}, phone={request.phoneNumber}")

    response = await identity_service.identify_contact(request)

    logger.info(f"Processed request. Primary contact ID: {response.contact.primaryContactId}")
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1
    )
