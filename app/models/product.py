"""
Product model - catalog row carrying the denormalized rating aggregate.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    String,
    Text,
    Float,
    Boolean,
    Integer,
    Numeric,
    DateTime,
    Index,
    Uuid,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from app.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    """
    Storefront product.

    Only the rating-relevant surface is owned by this service. The aggregate is
    stored once (average_rating, ratings_count) and written exclusively by the
    rating aggregator; the legacy field spellings are produced by the API
    schemas.
    """

    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(300), nullable=False)
    slug = Column(String(120), nullable=True, unique=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # Aggregate over approved reviews
    average_rating = Column(Float, nullable=False, default=0.0)
    ratings_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    reviews = relationship("Review", back_populates="product")

    __table_args__ = (
        CheckConstraint("average_rating >= 0 AND average_rating <= 5", name="ck_products_rating_range"),
        CheckConstraint("ratings_count >= 0", name="ck_products_ratings_count"),
        Index("idx_products_average_rating", "average_rating"),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name={self.name!r}, rating={self.average_rating}/{self.ratings_count})>"
