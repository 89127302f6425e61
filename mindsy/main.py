"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from mindsy.api import files, generate, health, notes, notifications, stripe_webhook, studies
from mindsy.api.health import APP_VERSION
from mindsy.config import get_settings
from mindsy.db.session import init_db
from mindsy.middleware.rate_limit import limiter

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Mindsy notes service...")

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    logger.info("Shutting down Mindsy notes service...")


app = FastAPI(
    title="Mindsy Notes Service",
    description="""
## Lecture recordings to study notes

- **Generate**: transcribe an uploaded recording, write Cornell notes and render them to PDF
- **Notes**: list, search, edit and organize generated notes
- **Study nodes**: a per-user folder tree (courses, years, subjects, semesters)
- **Files**: authenticated access to the stored PDF, markdown and transcript

### Authentication
Every `/api` endpoint except the Stripe webhook requires the session token
issued by the auth provider:
```
Authorization: Bearer <access token>
```

### Rate Limiting
Note generation and PDF regeneration are rate-limited per user.
    """,
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as ``{"error": detail}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Invalid bodies and query parameters are a 400 with the first problem."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", message)
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    content = {"error": "Internal server error"}
    if settings.debug:
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# Include routers
app.include_router(health.router)
app.include_router(generate.router)
app.include_router(notes.router)
app.include_router(studies.router)
app.include_router(files.router)
app.include_router(notifications.router)
app.include_router(stripe_webhook.router)


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with service info."""
    return {
        "service": settings.app_name,
        "version": APP_VERSION,
        "environment": settings.app_env,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mindsy.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
