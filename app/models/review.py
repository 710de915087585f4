"""
Review model - one customer's rating and comment for one product.
"""
import enum
import uuid
from sqlalchemy import (
    Column,
    String,
    Text,
    Boolean,
    Integer,
    SmallInteger,
    DateTime,
    ForeignKey,
    Index,
    Uuid,
    CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from app.db.database import Base
from app.models.product import utcnow


class ReviewStatus(str, enum.Enum):
    """Moderation states. Only approved reviews are listed and aggregated."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


RATING_MIN = 1
RATING_MAX = 5
TITLE_MAX_LENGTH = 120
COMMENT_MIN_LENGTH = 5
COMMENT_MAX_LENGTH = 4000


class Review(Base):
    """
    Product review table.
    Rows are never deleted; moderation only moves them between statuses.
    """

    __tablename__ = "reviews"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)

    # Content
    rating = Column(SmallInteger, nullable=False)
    title = Column(String(TITLE_MAX_LENGTH), nullable=True)
    comment = Column(Text, nullable=False)

    # Author: a signed-in user or free-text name/email
    user_id = Column(String, nullable=True)
    user_name = Column(String, nullable=True)
    user_email = Column(String, nullable=True)

    status = Column(
        SQLEnum(ReviewStatus, values_callable=lambda e: [m.value for m in e], name="review_status"),
        nullable=False,
        default=ReviewStatus.PENDING,
    )
    helpful = Column(Integer, nullable=False, default=0)
    verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    product = relationship("Product", back_populates="reviews")

    __table_args__ = (
        CheckConstraint(f"rating >= {RATING_MIN} AND rating <= {RATING_MAX}", name="ck_reviews_rating_range"),
        CheckConstraint("helpful >= 0", name="ck_reviews_helpful_non_negative"),
        # Listing and aggregation both filter on (product_id, status)
        Index("idx_reviews_product_status_created", "product_id", "status", "created_at"),
        Index("idx_reviews_product_status_rating", "product_id", "status", "rating"),
    )

    def __repr__(self):
        return f"<Review(id={self.id}, product_id={self.product_id}, rating={self.rating}, status={self.status.value})>"
