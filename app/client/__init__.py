"""
Python consumer client for the reviews API.
"""
from app.client.reviews_client import (
    ClientSummary,
    ReviewPage,
    ReviewsClient,
    ReviewsClientError,
    ZERO_SUMMARY,
)
from app.client.pager import ReviewPager

__all__ = [
    "ClientSummary",
    "ReviewPage",
    "ReviewsClient",
    "ReviewsClientError",
    "ZERO_SUMMARY",
    "ReviewPager",
]
