"""Service for personalized, similar-content and trending recommendations."""
from typing import Collection, Dict, List, Optional
import logging

import requests

from madifa_recommendation_service.config import (
    get_recency_half_life_days,
    get_release_half_life_days,
    get_trending_weights,
)
from madifa_recommendation_service.ml.preference_extractor import (
    PreferenceExtractor,
    default_reference_time,
    watched_content_ids,
)
from madifa_recommendation_service.ml.recommendation_ranker import RecommendationRanker
from madifa_recommendation_service.models import ContentItem, UserPreferenceProfile
from madifa_recommendation_service.services.data_loader_service import ContentDataLoader

logger = logging.getLogger(__name__)


class ContentNotFoundError(LookupError):
    """Raised when a reference content id is not in the catalog."""


class PersonalizedRecommendationService:
    """
    Wires the content API loader to the preference extractor and ranker.

    Every call fetches fresh inputs and recomputes; nothing is cached.
    """

    def __init__(
            self,
            loader: Optional[ContentDataLoader] = None,
            extractor: Optional[PreferenceExtractor] = None,
            ranker: Optional[RecommendationRanker] = None
    ):
        """
        Initialize the recommendation service.

        Args:
            loader: Content API loader (default: configured from settings)
            extractor: Preference extractor (default: configured half-life)
            ranker: Ranker (default: configured trending weights)
        """
        self.loader = loader or ContentDataLoader()

        if extractor is None:
            extractor = PreferenceExtractor(half_life_days=get_recency_half_life_days())
        self.extractor = extractor

        if ranker is None:
            weights = get_trending_weights()
            ranker = RecommendationRanker(
                popularity_weight=weights["popularity"],
                watch_count_weight=weights["watch_count"],
                release_recency_weight=weights["release_recency"],
                release_half_life_days=get_release_half_life_days(),
            )
        self.ranker = ranker

        logger.info("Initialized PersonalizedRecommendationService")
        logger.info(
            f"Trending weights - Popularity: {self.ranker.popularity_weight}, "
            f"Watches: {self.ranker.watch_count_weight}, "
            f"Recency: {self.ranker.release_recency_weight}"
        )

    def get_profile(self, user_id: int) -> UserPreferenceProfile:
        """Build the current taste profile of a user."""
        catalog = self.loader.get_catalog()
        return self._build_profile(user_id, catalog)[0]

    def _build_profile(self, user_id: int, catalog: List[ContentItem]):
        history = self.loader.get_watch_history(user_id)
        ratings = self.loader.get_ratings(user_id)
        profile = self.extractor.extract(history, catalog, ratings, now=default_reference_time())
        logger.info(
            f"Profile for user {user_id}: {profile.matched_entries} matched entries, "
            f"top genres {profile.top_genres(3)}"
        )
        return profile, history

    def get_recommendations_for_user(
            self,
            user_id: int,
            n: int = 10,
            exclude_watched: bool = True,
            exclude_ids: Optional[Collection[int]] = None
    ) -> Dict:
        """
        Get personalized recommendations for a user.

        Args:
            user_id: User to recommend for
            n: Number of recommendations
            exclude_watched: Hide content the user already completed
            exclude_ids: Extra content ids to hide (e.g. watchlist)

        Returns:
            Dict with the user id, whether the result is personalized, and items
        """
        catalog = self.loader.get_catalog()
        profile, history = self._build_profile(user_id, catalog)

        exclude = set(exclude_ids or ())
        if exclude_watched:
            exclude |= watched_content_ids(history)

        items = self.ranker.recommend(
            catalog,
            profile,
            exclude=exclude,
            limit=n,
            watch_counts=self.loader.get_watch_counts(),
        )
        return {
            'user_id': user_id,
            'personalized': not profile.is_empty,
            'count': len(items),
            'recommendations': [item.to_dict() for item in items],
        }

    def get_similar_content(self, content_id: int, n: int = 10) -> Dict:
        """
        Get content similar to a catalog item.

        The reference is looked up in the catalog first and fetched by id
        otherwise, so items outside the listed catalog still get results.

        Raises:
            ContentNotFoundError: If the content API does not know content_id
        """
        catalog = self.loader.get_catalog()
        reference = next((item for item in catalog if item.id == content_id), None)
        if reference is None:
            reference = self._fetch_content(content_id)

        items = self.ranker.similar_to(reference, catalog, limit=n)
        return {
            'content_id': content_id,
            'count': len(items),
            'recommendations': [item.to_dict() for item in items],
        }

    def _fetch_content(self, content_id: int) -> ContentItem:
        try:
            return self.loader.get_content(content_id)
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                raise ContentNotFoundError(f"Content {content_id} not found") from e
            raise
        except requests.RequestException:
            raise
        except ValueError as e:
            raise ContentNotFoundError(f"Content {content_id} not found: {e}") from e

    def get_trending(self, n: int = 10) -> Dict:
        """Get trending content across all users."""
        catalog = self.loader.get_catalog()
        items = self.ranker.trending(catalog, self.loader.get_watch_counts(), limit=n)
        return {
            'count': len(items),
            'recommendations': [item.to_dict() for item in items],
        }
