from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.core.logging_config import setup_logging, get_logger
from app.core.rate_limit import limiter
from app.db.mongodb import init_db, close_db
from app.middleware.access_log import AccessLogMiddleware, RequestContextMiddleware
from app.routes import auth, channels, files, messages, ops, profiles, workspaces

# Setup structured logging BEFORE any other imports that might log
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info(
        "application_startup",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
    )

    try:
        await init_db()
        logger.info("database_initialized", database=settings.DATABASE_NAME)
    except Exception as e:
        logger.error(
            "database_initialization_failed",
            error=str(e),
            database=settings.DATABASE_NAME,
            exc_info=True,
        )
        raise

    yield

    # Shutdown
    logger.info("application_shutdown")
    await close_db()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.API_VERSION,
    description="""
**Multi-tenant team chat API built with FastAPI and MongoDB.**

Every user belongs to exactly one workspace. Channels, messages and search
results are always scoped to the caller's workspace.

## Key Features
- **Workspace Bootstrap**: Idempotent first-login workspace creation with a default #general channel
- **Channels & Messages**: Ordered channel history with author names and avatars
- **Search**: Case-insensitive multi-term search within a workspace or a single channel
- **Profiles**: Display names and avatar uploads via signed upload URLs
- **Structured Logging**: JSON logging with correlation IDs for request tracing

## Security
- JWT Bearer authentication (HS256) issued by `/auth/signin`
- Workspace membership checked on every channel and message operation
- Single-membership invariant enforced by a unique index and verified on every read
    """,
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if settings.ENABLE_DOCS else None,
    lifespan=lifespan
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add Prometheus metrics instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_group_untemplated=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics"],  # Don't track metrics endpoint itself
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, endpoint="/metrics")

# ========== Middleware Stack ==========
# Middleware execute in REVERSE order of registration.
#
# Execution Order:
# 1. RequestContextMiddleware (binds caller user id from the bearer token)
# 2. AccessLogMiddleware (correlation id, logs request/response)
# 3. CORSMiddleware (handles CORS headers)
# 4. Route Handler

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

app.add_middleware(AccessLogMiddleware)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(ops.router, tags=["operations"])
app.include_router(auth.router, prefix=settings.API_PREFIX, tags=["auth"])
app.include_router(workspaces.router, prefix=settings.API_PREFIX, tags=["workspaces"])
app.include_router(channels.router, prefix=settings.API_PREFIX, tags=["channels"])
app.include_router(messages.router, prefix=settings.API_PREFIX, tags=["messages"])
app.include_router(profiles.router, prefix=settings.API_PREFIX, tags=["profiles"])
app.include_router(files.router, prefix=settings.API_PREFIX, tags=["files"])


# Configure OpenAPI security scheme for JWT Bearer authentication
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    if settings.ENABLE_DOCS:
        openapi_schema["components"] = openapi_schema.get("components", {})
        openapi_schema["components"]["securitySchemes"] = {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": f"Access token from `{settings.API_PREFIX}/auth/signin`. Format: `Bearer <token>`."
            }
        }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=False,  # Disable default access log - we use custom middleware
    )
