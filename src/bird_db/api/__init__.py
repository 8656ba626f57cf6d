"""
API serving layer.

Routes HTTP requests to the query engine and formats the responses.
"""

from bird_db.api.models import ErrorResponse, SuccessResponse
from bird_db.api.ratelimit import SlidingWindowRateLimiter
from bird_db.api.server import create_app

__all__ = [
    "ErrorResponse",
    "SuccessResponse",
    "SlidingWindowRateLimiter",
    "create_app",
]
