"""
FastAPI application entry point.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from minutemind.config import get_settings
from minutemind.routes import auth, email, health, summarize, user
from minutemind.utils.errors import AppError, ValidationError
from minutemind.utils.logger import get_logger, setup_logging

# Setup logging
setup_logging()
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="MinuteMind",
    description="Meeting summaries and email follow-ups sent from your own Gmail",
    version="1.0.0",
)

# Get settings
settings = get_settings()

# Configure CORS: only listed frontends may make credentialed requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Map application errors to { error } JSON responses."""
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed [{exc.code}]: {exc.message}")
    else:
        logger.info(f"{request.url.path} rejected [{exc.code}]: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing request bodies get the same { error } shape."""
    logger.info(f"{request.url.path} rejected [INVALID_REQUEST]: {[e.get('loc') for e in exc.errors()]}")
    error = ValidationError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Something went wrong. Please try again."})


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(user.router, prefix="/api", tags=["User"])
app.include_router(summarize.router, prefix="/api", tags=["Summary"])
app.include_router(email.router, prefix="/api", tags=["Email"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("minutemind.main:app", host="0.0.0.0", port=settings.port)
