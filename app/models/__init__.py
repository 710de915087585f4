"""
SQLAlchemy models package.
Exports all database models for easy import.
"""
from app.models.product import Product
from app.models.review import Review, ReviewStatus

__all__ = [
    "Product",
    "Review",
    "ReviewStatus",
]
