"""
API dependencies for dependency injection.
"""
from typing import AsyncGenerator, Optional
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import session_scope
from app.core.config import settings
from app.core.exceptions import UnauthorizedException
from app.services.components import ReviewComponents
from app.services.aggregator import RatingAggregator
from app.services.summaries import SummaryService
from app.services.invalidation import ChangeMarkerStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session, committed after the handler returns."""
    async with session_scope() as session:
        yield session


def get_components(request: Request) -> ReviewComponents:
    """Process-scoped services built in the application lifespan."""
    return request.app.state.components


def get_aggregator(components: ReviewComponents = Depends(get_components)) -> RatingAggregator:
    return components.aggregator


def get_summary_service(components: ReviewComponents = Depends(get_components)) -> SummaryService:
    return components.summaries


def get_marker_store(components: ReviewComponents = Depends(get_components)) -> ChangeMarkerStore:
    return components.markers


async def verify_admin_key(x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key")) -> str:
    """
    Dependency for verifying the moderation API key.

    Raises:
        UnauthorizedException: If admin key is invalid
    """
    if not x_admin_key or x_admin_key != settings.ADMIN_API_KEY:
        raise UnauthorizedException("Invalid admin API key")

    return x_admin_key
