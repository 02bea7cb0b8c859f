"""
Define application startup and shutdown procedures
"""

import re
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from core.config import get_settings
from core.db import init_db
from core.logger import logger

SENSITIVE_MARKERS = ("PASSWORD", "SECRET", "KEY")


def _log_setting(key: str, value):
    """Log a setting, masking sensitive values like passwords and secrets"""
    if any(marker in key.upper() for marker in SENSITIVE_MARKERS) and value is not None:
        logger.info("  %s: %s", key, "*****")
    elif "SQLALCHEMY_DATABASE_URI" in key and value is not None:
        # Mask password in database URI if present
        masked_value = re.sub(r"://(.*?):(.*?)@", r"://\1:*****@", value)
        logger.info("  %s: %s", key, masked_value)
    else:
        logger.info("  %s: %s", key, value)


# Handle startup/shutdown tasks
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("In lifespan...starting up")

    settings = get_settings()
    logger.info("Configuration Settings:")

    # Log computed fields first (they don't appear in vars())
    computed_fields = {
        "SQLALCHEMY_DATABASE_URI": settings.SQLALCHEMY_DATABASE_URI,
        "JWT_SECRET_KEY": settings.JWT_SECRET_KEY,
    }
    for key, value in computed_fields.items():
        _log_setting(key, value)

    # Log remaining settings
    for key, value in vars(settings).items():
        _log_setting(key, value)

    logger.info("Initializing database...")
    init_db()

    if settings.STORAGE_BACKEND == "local":
        storage_root = Path(settings.STORAGE_ROOT)
        storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("Blob storage root: %s", storage_root.resolve())
    else:
        logger.info("Blob storage bucket: s3://%s/%s", settings.STORAGE_BUCKET, settings.STORAGE_PREFIX)

    logger.info("In lifespan...yield")
    try:
        yield
    finally:
        # Shutdown
        logger.info("In lifespan...shutting down")
