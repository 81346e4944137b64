"""Recommendation models produced by the recommendation engine."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class RecommendationType(str, Enum):
    """Rule family that produced a recommendation."""
    SPENDING_LIMIT = "Spending Limit"
    CATEGORY_ALERT = "Category Alert"
    SAVING_TIP = "Saving Tip"
    BUDGET_OPTIMIZATION = "Budget Optimization"
    TREND_ANALYSIS = "Trend Analysis"


class Recommendation(BaseModel):
    """A single advisory message."""

    id: UUID = Field(default_factory=uuid4)
    type: RecommendationType
    title: str
    description: str
    priority: int = Field(
        ...,
        ge=1,
        le=5,
        description="1-5, 5 is the highest priority"
    )
    created_at: datetime = Field(default_factory=datetime.now)
    actionable: bool = False
    action_title: Optional[str] = None
