"""
Pydantic base models for request/response envelopes.

DESIGN PRINCIPLE:
- Models should reflect data structure, not business logic
- Keep models simple and focused on validation
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Any, Optional


class BaseResponse(BaseModel):
    """
    Base response model for API responses.
    All API responses use this envelope for consistency.
    """
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
