"""
Product read endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.core.exceptions import NotFoundException, StoreUnavailableException
from app.core.logging import logger
from app.models import Product
from app.schemas.product import ProductOut, ProductResponse
from app.services.references import try_parse_reference


router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("/{id_or_slug}", response_model=ProductResponse)
async def get_product(id_or_slug: str, db: AsyncSession = Depends(get_db)):
    """
    Fetch a product by id or slug, including its rating aggregate.

    Raises:
        404: Product not found
        503: Database unavailable
    """
    pid = try_parse_reference(id_or_slug)
    stmt = select(Product).where(Product.id == pid if pid else Product.slug == id_or_slug)

    try:
        product = (await db.execute(stmt)).scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(
            "Failed to load product",
            extra={"id_or_slug": id_or_slug, "error_type": type(e).__name__},
            exc_info=True,
        )
        raise StoreUnavailableException("Failed to load product")

    if product is None:
        raise NotFoundException("Product", id_or_slug)

    return ProductResponse(product=ProductOut.from_model(product))
