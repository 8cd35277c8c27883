"""
Main FastAPI application
Quiz generation service for exam practice
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import time
import traceback

from quizgen.config import settings
from quizgen.database import init_db
from quizgen.api import quizzes
from quizgen.exceptions import QuizGenerationError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Generates validated multiple-choice quizzes from cache, stored questions or Gemini",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["POST"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

# Compressed responses for clients that accept them
app.add_middleware(GZipMiddleware, minimum_size=1000)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""

    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration:.3f}s"
    )

    return response


# Generation failures
@app.exception_handler(QuizGenerationError)
async def quiz_generation_exception_handler(request: Request, exc: QuizGenerationError):
    """Convert any generation failure to the uniform error body"""

    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc}")
    else:
        logger.info(f"{type(exc).__name__}: {exc}")

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers=exc.headers(),
    )


# Body validation errors raised by FastAPI itself
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": str(exc.errors())[:300]},
    )


# HTTP exception handler
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Format HTTP exceptions consistently"""

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors gracefully"""

    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    content = {"error": "Internal server error", "details": str(exc)}
    if settings.DEBUG:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    return JSONResponse(status_code=500, content=content)


# Health check endpoint
@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": time.time()
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Quiz Generation API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "generate": "POST /generate-quiz"
    }


# Include routers
app.include_router(quizzes.router)


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize database on startup"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    logger.info("Application startup complete")


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down application")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "quizgen.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
