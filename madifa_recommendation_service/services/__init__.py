"""Service classes"""

from .data_loader_service import ContentDataLoader
from .recommendation_service import ContentNotFoundError, PersonalizedRecommendationService

__all__ = ["ContentDataLoader", "ContentNotFoundError", "PersonalizedRecommendationService"]
