"""
Health check endpoints.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.core.config import settings
from app.core.exceptions import StoreUnavailableException


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness: the process is up."""
    return HealthResponse(status="ok", version=settings.APP_VERSION)


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """
    Readiness: the database answers.

    Returns:
        200: Ready
        503: Database unavailable
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        raise StoreUnavailableException("Database unavailable")
    return HealthResponse(status="ready", version=settings.APP_VERSION)
