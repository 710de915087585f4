"""
API routers package.
"""
from app.api import health, reviews, summaries, admin, products

__all__ = [
    "health",
    "reviews",
    "summaries",
    "admin",
    "products",
]
