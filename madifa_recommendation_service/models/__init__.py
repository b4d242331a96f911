"""Engine data types"""

from madifa_recommendation_service.models.content_item import ContentItem
from madifa_recommendation_service.models.preference_profile import UserPreferenceProfile
from madifa_recommendation_service.models.watch_history import RatingEntry, WatchHistoryEntry

__all__ = [
    "ContentItem",
    "RatingEntry",
    "UserPreferenceProfile",
    "WatchHistoryEntry",
]
