# routers/system.py
import os
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from schema_probe import describe_schema
from .auth import require_level, SUPER_ADMIN

logger = logging.getLogger(__name__)

# Plain-text file holding the slug this kiosk should display
KIOSK_SLUG_FILE = os.getenv("KIOSK_SLUG_FILE", "")

router = APIRouter(tags=["system"])


@router.get("/health")
def health_check(request: Request):
    """Database round trip"""
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check error: {e}")
        raise HTTPException(status_code=500, detail=f"unhealthy: {e}")
    return {"status": "healthy", "database": "connected"}


@router.get("/schema")
def get_schema(request: Request, current_user: dict = Depends(require_level(SUPER_ADMIN))):
    try:
        return describe_schema(request.app.state.engine)
    except SQLAlchemyError as e:
        logger.error(f"Error getting schema: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/get-slug")
def get_kiosk_slug():
    if not KIOSK_SLUG_FILE:
        raise HTTPException(status_code=404, detail="Kiosk slug file is not configured")
    path = Path(KIOSK_SLUG_FILE)
    try:
        slug = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.error(f"Error reading slug file {path}: {e}")
        raise HTTPException(status_code=404, detail="Slug file not found")
    if not slug:
        raise HTTPException(status_code=404, detail="Slug file is empty")
    return {"slug": slug}
