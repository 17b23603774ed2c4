from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from api.v1 import auth, users, email, media
from core.config import settings
from core.exceptions import register_exception_handlers
from db.base import initialize_database
from db.session import engine, SessionLocal
from utils.logging_config import configure_logging, RequestContextMiddleware

# Configure logging with date-based files and TTL retention
logger = configure_logging("authkit")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await initialize_database()
        logger.info("SQL database initialized")
    except Exception as e:
        logger.warning(f"SQL init skipped or failed: {e}")
    if settings.SHOW_OTP:
        logger.warning("SHOW_OTP is enabled; one-time passcodes are echoed in responses")
    logger.info("Application startup complete")
    yield
    await engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Add GZip compression for larger JSON payloads
app.add_middleware(GZipMiddleware, minimum_size=500)

# Add logging context middleware to capture user_id and API path
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, tags=["Authentication"])
app.include_router(users.router, tags=["Users"])
app.include_router(email.router, tags=["Email"])
app.include_router(media.router, tags=["Media"])

# Files written by the local media storage backend
if settings.MEDIA_BASE_URL.startswith("/"):
    app.mount(settings.MEDIA_BASE_URL, StaticFiles(directory=settings.MEDIA_DIR, check_dir=False), name="media-files")


@app.get("/")
async def root():
    return {"message": settings.APP_NAME, "version": settings.VERSION}


@app.get("/health")
async def health_check():
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        db_status = "sql_connected"
    except Exception as e:
        logger.warning(f"Health SQL check failed: {e}")
        db_status = "sql_unavailable"
    return {"status": "healthy", "database": db_status}
