"""
Pydantic schemas for the product read endpoint.
"""
import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from app.models import Product


class ProductOut(BaseModel):
    """
    Product as seen by the storefront.

    The rating aggregate is persisted once; rating/reviews and
    averageRating/ratingsCount are two spellings of the same values.
    """

    id: uuid.UUID = Field(..., alias="_id")
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    price: float
    is_active: bool = Field(..., alias="isActive")
    rating: float
    reviews: int
    average_rating: float = Field(..., alias="averageRating")
    ratings_count: int = Field(..., alias="ratingsCount")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_model(cls, product: Product) -> "ProductOut":
        return cls(
            id=product.id,
            name=product.name,
            slug=product.slug,
            description=product.description,
            price=float(product.price or 0),
            is_active=product.is_active,
            rating=product.average_rating,
            reviews=product.ratings_count,
            average_rating=product.average_rating,
            ratings_count=product.ratings_count,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class ProductResponse(BaseModel):
    success: bool = True
    product: ProductOut
