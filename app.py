"""
Hostel Management API with PostgreSQL, S3, and security features.
"""
import shutil
import time
from contextlib import asynccontextmanager

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi_mail import FastMail, ConnectionConfig
from sqlalchemy.exc import SQLAlchemyError

import config
from database.connection import Database
from storage.blob_store import LOCAL_URL_PREFIX, LocalBlobStore, S3BlobStore
from storage.s3_client import S3Client
from core.logger import logger
from middleware.security import (
    RateLimitMiddleware, SecurityHeadersMiddleware,
    setup_cors, setup_trusted_hosts
)
from middleware.auth_middleware import AuthRequiredMiddleware
from routers.auth import router as auth_router
from routers.users import router as users_router
from routers.students import router as students_router, admin_router as admin_students_router
from routers.complaints import router as complaints_router, admin_router as admin_complaints_router
from routers.rooms import router as rooms_router, admin_router as admin_rooms_router
from routers.notifications import router as notifications_router, guard_router as announcements_router
from routers.guard import router as guard_router
from routers.visitors import router as visitors_router
from routers.feedback import router as feedback_router, admin_router as admin_feedback_router
from routers.dashboards import router as dashboards_router


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for FastAPI app.
    Initialize database, blob store and mail on startup.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {config.APP_NAME}...")
    logger.info("=" * 60)

    # Initialize database
    try:
        config.db = Database(
            database_url=config.DATABASE_URL,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW
        )
        # Create tables if they don't exist
        config.db.create_tables()
        logger.info("Database initialized successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise

    # Initialize blob store for complaint photos
    if config.USE_S3:
        try:
            client = S3Client(
                bucket_name=config.S3_BUCKET_NAME,
                aws_access_key_id=config.S3_ACCESS_KEY_ID,
                aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
                region_name=config.S3_REGION,
                endpoint_url=config.S3_ENDPOINT_URL,
            )
            config.blob_store = S3BlobStore(client, expires_in=config.PRESIGNED_URL_EXPIRY_SECONDS)
            logger.info("S3 blob store initialized successfully")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to initialize S3 client: {e}", exc_info=True)
            logger.warning("Continuing without S3 - files will be stored locally")
            config.blob_store = LocalBlobStore(config.UPLOADS_DIR)
    else:
        logger.info("S3 storage disabled - using local storage")
        config.blob_store = LocalBlobStore(config.UPLOADS_DIR)

    # Initialize FastAPI-Mail for notifications
    if config.SMTP_USER and config.SMTP_PASSWORD:
        try:
            mail_conf = ConnectionConfig(
                MAIL_USERNAME=config.SMTP_USER,
                MAIL_PASSWORD=config.SMTP_PASSWORD,
                MAIL_FROM=config.SMTP_FROM_EMAIL or config.SMTP_USER,
                MAIL_FROM_NAME=config.SMTP_FROM_NAME,
                MAIL_PORT=config.SMTP_PORT,
                MAIL_SERVER=config.SMTP_HOST,
                MAIL_STARTTLS=config.SMTP_USE_TLS,
                MAIL_SSL_TLS=config.SMTP_USE_SSL,
                USE_CREDENTIALS=True,
                VALIDATE_CERTS=True,
            )
            app.state.mail = FastMail(mail_conf)
            logger.info("FastAPI-Mail initialized successfully")
        except ValueError as e:
            logger.error(f"Failed to initialize FastAPI-Mail: {e}", exc_info=True)
            app.state.mail = None
    else:
        logger.warning("SMTP credentials not set (SMTP_USER/SMTP_PASSWORD). Notification emails will not be sent.")
        app.state.mail = None

    logger.info("=" * 60)
    logger.info("Server ready!")
    logger.info(f"Environment: {config.ENVIRONMENT}")
    logger.info("API Docs: http://localhost:8000/docs")
    logger.info("=" * 60)

    yield

    # Cleanup on shutdown
    logger.info("Shutting down...")
    if config.db:
        config.db.engine.dispose()
        logger.info("Database connections closed")


# Initialize FastAPI app
app = FastAPI(
    title=config.APP_NAME,
    description="Hostel management API: role routing, complaints, room changes, visitors and notifications",
    version=config.APP_VERSION,
    lifespan=lifespan
)

# Setup security middleware
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=config.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=config.RATE_LIMIT_PER_HOUR
)
# Logs requests without credentials; dependencies do the actual validation
app.add_middleware(AuthRequiredMiddleware)
setup_cors(app, config.CORS_ORIGINS)
if config.ENVIRONMENT == "production":
    setup_trusted_hosts(app, config.TRUSTED_HOSTS)

# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(students_router)
app.include_router(admin_students_router)
app.include_router(complaints_router)
app.include_router(admin_complaints_router)
app.include_router(rooms_router)
app.include_router(admin_rooms_router)
app.include_router(notifications_router)
app.include_router(announcements_router)
app.include_router(guard_router)
app.include_router(visitors_router)
app.include_router(feedback_router)
app.include_router(admin_feedback_router)
app.include_router(dashboards_router)

# Locally stored complaint photos
if not config.USE_S3:
    app.mount(LOCAL_URL_PREFIX, StaticFiles(directory=str(config.UPLOADS_DIR), check_dir=False), name="uploads")


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Store failures that no service handled become a generic 500."""
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/")
async def root():
    """Root endpoint with API information. Public endpoint."""
    return {
        "message": config.APP_NAME,
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "docs": "/docs",
        "s3_enabled": isinstance(config.blob_store, S3BlobStore),
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring. Public endpoint."""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "checks": {}
    }

    # Check database
    if config.db is None:
        health_status["checks"]["database"] = {"status": "error", "error": "not initialized"}
        health_status["status"] = "degraded"
    else:
        try:
            config.db.ping()
            health_status["checks"]["database"] = {"status": "ok"}
        except SQLAlchemyError as e:
            health_status["checks"]["database"] = {"status": "error", "error": str(e)}
            health_status["status"] = "degraded"

    # Check S3 bucket when photos go there
    if isinstance(config.blob_store, S3BlobStore):
        client = config.blob_store.client
        try:
            client.s3_client.head_bucket(Bucket=client.bucket_name)
            health_status["checks"]["s3"] = {"status": "ok", "enabled": True, "bucket": client.bucket_name}
        except (ClientError, BotoCoreError) as e:
            health_status["checks"]["s3"] = {"status": "error", "enabled": True, "bucket": client.bucket_name, "error": str(e)}
            health_status["status"] = "degraded"
    else:
        health_status["checks"]["s3"] = {"status": "disabled", "enabled": False, "bucket": None}

    # Check disk space for local uploads
    try:
        disk_usage = shutil.disk_usage(config.UPLOADS_DIR)
        free_gb = disk_usage.free / (1024 ** 3)
        health_status["checks"]["disk"] = {
            "free_gb": round(free_gb, 2),
            "percent_free": round((disk_usage.free / disk_usage.total) * 100, 2)
        }
        if free_gb < 1:
            health_status["status"] = "degraded"
    except OSError as e:
        health_status["checks"]["disk"] = {"error": str(e)}

    return health_status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
