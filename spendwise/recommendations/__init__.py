"""Recommendation engine package."""

from spendwise.recommendations.engine import (
    RecommendationService,
    generate_recommendations,
)

__all__ = [
    "RecommendationService",
    "generate_recommendations",
]
