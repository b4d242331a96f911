"""Unit tests for madifa_recommendation_service.ml.recommendation_ranker."""
from datetime import date, timedelta

import numpy as np
import pytest

from madifa_recommendation_service.ml.preference_extractor import PreferenceExtractor
from madifa_recommendation_service.ml.recommendation_ranker import (
    RecommendationRanker,
    validate_limit,
    watch_counts_from_signal,
)
from madifa_recommendation_service.models import ContentItem, UserPreferenceProfile, WatchHistoryEntry


def ids(items):
    return [item.id for item in items]


class TestRecommendationRankerInit:
    """Tests for RecommendationRanker initialization."""

    def test_init_default_weights(self):
        """Test initialization with default weights."""
        # Act
        ranker = RecommendationRanker()

        # Assert
        assert ranker.popularity_weight == 0.5
        assert ranker.watch_count_weight == 0.3
        assert ranker.release_recency_weight == 0.2
        assert ranker.release_half_life_days == 365.0
        assert ranker.content_type_weight == 0.0

    def test_init_rejects_bad_half_life(self):
        """Test that a non-positive half-life is rejected."""
        # Act & Assert
        with pytest.raises(ValueError):
            RecommendationRanker(release_half_life_days=-1)


class TestValidateLimit:
    """Tests for validate_limit."""

    def test_accepts_non_negative_integers(self):
        """Test valid limits."""
        # Assert
        assert validate_limit(0) == 0
        assert validate_limit(np.int64(5)) == 5

    @pytest.mark.parametrize('limit', [-1, 2.5, '3', None, True])
    def test_rejects_invalid_limits(self, limit):
        """Test caller contract violations."""
        # Act & Assert
        with pytest.raises(ValueError):
            validate_limit(limit)


class TestWatchCountsFromSignal:
    """Tests for watch_counts_from_signal."""

    def test_counts_history_entries(self):
        """Test counting entries from all users."""
        # Arrange
        signal = [WatchHistoryEntry(content_id=1), WatchHistoryEntry(content_id=2),
                  WatchHistoryEntry(content_id=1)]

        # Act & Assert
        assert watch_counts_from_signal(signal) == {1: 2, 2: 1}

    def test_mapping_drops_junk_and_non_positive(self):
        """Test cleaning a precomputed mapping."""
        # Act & Assert
        assert watch_counts_from_signal({1: 3, 2: 0, 3: 'x', 4: -2}) == {1: 3.0}
        assert watch_counts_from_signal(None) == {}

    def test_mapping_skips_malformed_keys(self):
        """Test that unusable content ids are skipped instead of raising."""
        # Act
        result = watch_counts_from_signal({'abc': 3, None: 1, 2.5: 4, '7': 2, 2: 10})

        # Assert
        assert result == {7: 2.0, 2: 10.0}

    def test_mapping_skips_non_finite_counts(self):
        """Test that infinite and NaN counts are dropped."""
        # Act & Assert
        assert watch_counts_from_signal({1: float('inf'), 2: float('nan'), 3: 1}) == {3: 1.0}


class TestRecommend:
    """Tests for personalized recommendations."""

    def test_drama_scenario(self, now):
        """Test that genre affinity beats popularity."""
        # Arrange
        catalog = [
            ContentItem(id=1, genres=('Drama',), popularity=10),
            ContentItem(id=2, genres=('Comedy',), popularity=50),
        ]
        history = [WatchHistoryEntry(content_id=1, watched_at=now, completed=True)]
        profile = PreferenceExtractor().extract(history, catalog, {})

        # Act
        result = RecommendationRanker().recommend(catalog, profile, set(), 2)

        # Assert
        assert ids(result) == [1, 2]

    @pytest.mark.parametrize('limit', [0, 1, 3, 6, 10])
    def test_length_is_min_of_limit_and_catalog(self, sample_catalog, limit):
        """Test that results fill up to the limit."""
        # Arrange
        profile = UserPreferenceProfile(genre_weights={'Drama': 1.0})

        # Act
        result = RecommendationRanker().recommend(sample_catalog, profile, None, limit)

        # Assert
        assert len(result) == min(limit, len(sample_catalog))
        assert len(set(ids(result))) == len(result)

    def test_no_duplicates_with_duplicated_catalog(self, sample_catalog):
        """Test that repeated catalog ids are returned once."""
        # Arrange
        catalog = sample_catalog + sample_catalog
        profile = UserPreferenceProfile(genre_weights={'Comedy': 1.0})

        # Act
        result = RecommendationRanker().recommend(catalog, profile, limit=20)

        # Assert
        assert sorted(ids(result)) == [1, 2, 3, 4, 5, 6]

    def test_exclusion_respected(self, sample_catalog):
        """Test that excluded ids never appear."""
        # Arrange
        profile = UserPreferenceProfile(genre_weights={'Drama': 1.0, 'Comedy': 0.5})
        exclude = {1, 2, 6}

        # Act
        result = RecommendationRanker().recommend(sample_catalog, profile, exclude, 10)

        # Assert
        assert not exclude & set(ids(result))
        assert len(result) == 3

    def test_deterministic(self, sample_catalog):
        """Test identical inputs give identical output."""
        # Arrange
        profile = UserPreferenceProfile(genre_weights={'Crime': 0.7, 'Comedy': 0.7})
        ranker = RecommendationRanker()

        # Act
        first = ranker.recommend(sample_catalog, profile, limit=6)
        second = ranker.recommend(sample_catalog, profile, limit=6)

        # Assert
        assert ids(first) == ids(second)

    def test_empty_profile_matches_trending(self, sample_catalog):
        """Test the popularity fallback for users without history."""
        # Arrange
        profile = PreferenceExtractor().extract([], sample_catalog, {})
        ranker = RecommendationRanker()

        # Act
        recommended = ranker.recommend(sample_catalog, profile, set(), 4)
        trending = ranker.trending(sample_catalog, None, 4)

        # Assert
        assert ids(recommended) == ids(trending)

    def test_personalized_items_first_then_trending_fill(self, sample_catalog):
        """Test that unmatched slots come from trending order."""
        # Arrange
        profile = UserPreferenceProfile(genre_weights={'Western': 1.0})
        ranker = RecommendationRanker()

        # Act
        result = ranker.recommend(sample_catalog, profile, limit=4)

        # Assert
        expected_fill = [i for i in ids(ranker.trending(sample_catalog, limit=6)) if i != 5][:3]
        assert ids(result) == [5] + expected_fill

    def test_fill_uses_watch_counts(self):
        """Test that the aggregate signal reaches the trending fallback."""
        # Arrange
        catalog = [ContentItem(id=1, popularity=10), ContentItem(id=2, popularity=10)]

        # Act
        result = RecommendationRanker().recommend(
            catalog, UserPreferenceProfile.empty(), limit=2, watch_counts={2: 50}
        )

        # Assert
        assert ids(result) == [2, 1]

    def test_score_sums_tag_weights(self):
        """Test that items matching more liked tags rank higher."""
        # Arrange
        catalog = [
            ContentItem(id=1, genres=('Drama',)),
            ContentItem(id=2, genres=('Drama', 'Crime')),
            ContentItem(id=3, genres=('Crime',)),
        ]
        profile = UserPreferenceProfile(genre_weights={'Drama': 1.0, 'Crime': 0.6})

        # Act
        scores = RecommendationRanker().score_items(catalog, profile)

        # Assert
        assert scores.tolist() == pytest.approx([1.0, 1.6, 0.6])

    def test_tie_break_popularity_then_release_then_id(self):
        """Test the deterministic tie-break chain."""
        # Arrange
        catalog = [
            ContentItem(id=5, genres=('Drama',), popularity=10, release_date=date(2020, 1, 1)),
            ContentItem(id=4, genres=('Drama',), popularity=10),
            ContentItem(id=3, genres=('Drama',), popularity=10, release_date=date(2022, 1, 1)),
            ContentItem(id=2, genres=('Drama',), popularity=20),
            ContentItem(id=1, genres=('Drama',), popularity=10),
        ]
        profile = UserPreferenceProfile(genre_weights={'Drama': 1.0})

        # Act
        result = RecommendationRanker().recommend(catalog, profile, limit=5)

        # Assert
        assert ids(result) == [2, 3, 5, 1, 4]

    def test_float_noise_does_not_break_ties(self):
        """Test that equal sums computed in different orders still tie."""
        # Arrange
        catalog = [
            ContentItem(id=2, genres=('A', 'B'), popularity=1),
            ContentItem(id=1, genres=('C',), popularity=1),
        ]
        profile = UserPreferenceProfile(genre_weights={'A': 0.1, 'B': 0.2, 'C': 0.3})

        # Act
        result = RecommendationRanker().recommend(catalog, profile, limit=2)

        # Assert
        assert ids(result) == [1, 2]

    def test_monotonic_in_genre_weight(self):
        """Test that raising a genre's weight never lowers its items."""
        # Arrange
        catalog = [
            ContentItem(id=1, genres=('Drama',), popularity=5),
            ContentItem(id=2, genres=('Comedy',), popularity=50),
            ContentItem(id=3, genres=('Comedy', 'Romance'), popularity=20),
        ]
        ranker = RecommendationRanker()
        positions = []

        # Act
        for drama_weight in (0.0, 0.2, 0.5, 0.9, 1.0, 3.0):
            profile = UserPreferenceProfile(genre_weights={'Drama': drama_weight, 'Comedy': 0.8,
                                                           'Romance': 0.3})
            positions.append(ids(ranker.recommend(catalog, profile, limit=3)).index(1))

        # Assert
        assert positions == sorted(positions, reverse=True)
        assert positions[-1] == 0

    def test_duration_weight(self):
        """Test the optional duration bucket bonus."""
        # Arrange
        catalog = [
            ContentItem(id=1, genres=('Drama',), duration=7200, popularity=50),
            ContentItem(id=2, genres=('Drama',), duration=600, popularity=10),
        ]
        profile = UserPreferenceProfile(genre_weights={'Drama': 1.0},
                                        duration_weights={'short': 1.0, 'long': 0.2})

        # Act
        plain = RecommendationRanker().recommend(catalog, profile, limit=2)
        bucketed = RecommendationRanker(duration_weight=0.5).recommend(catalog, profile, limit=2)

        # Assert
        assert ids(plain) == [1, 2]
        assert ids(bucketed) == [2, 1]

    def test_content_type_weight(self):
        """Test the optional content type bonus."""
        # Arrange
        catalog = [
            ContentItem(id=1, genres=('Drama',), content_type='short_film', popularity=50),
            ContentItem(id=2, genres=('Drama',), content_type='movie', popularity=10),
        ]
        profile = UserPreferenceProfile(genre_weights={'Drama': 1.0},
                                        content_type_weights={'movie': 1.0})

        # Act
        plain = RecommendationRanker().recommend(catalog, profile, limit=2)
        typed = RecommendationRanker(content_type_weight=0.5).recommend(catalog, profile, limit=2)

        # Assert
        assert ids(plain) == [1, 2]
        assert ids(typed) == [2, 1]

    def test_empty_catalog(self):
        """Test that an empty catalog gives an empty result."""
        # Act & Assert
        assert RecommendationRanker().recommend([], UserPreferenceProfile.empty(), limit=5) == []

    def test_negative_limit_raises(self, sample_catalog):
        """Test caller contract violation."""
        # Act & Assert
        with pytest.raises(ValueError):
            RecommendationRanker().recommend(sample_catalog, UserPreferenceProfile.empty(), limit=-1)

    def test_inputs_are_not_mutated(self, sample_catalog):
        """Test that ranking leaves its inputs untouched."""
        # Arrange
        catalog_before = list(sample_catalog)
        exclude = {3}
        profile = UserPreferenceProfile(genre_weights={'Drama': 1.0})

        # Act
        RecommendationRanker().recommend(sample_catalog, profile, exclude, 3)

        # Assert
        assert sample_catalog == catalog_before
        assert exclude == {3}
        assert dict(profile.genre_weights) == {'Drama': 1.0}


class TestSimilarTo:
    """Tests for similar-content lookup."""

    def test_drama_thriller_scenario(self):
        """Test that the item sharing a genre wins."""
        # Arrange
        reference = ContentItem(id=1, genres=('Drama', 'Thriller'))
        catalog = [
            reference,
            ContentItem(id=2, genres=('Drama',)),
            ContentItem(id=3, genres=('Comedy',), popularity=100),
        ]

        # Act
        result = RecommendationRanker().similar_to(reference, catalog, 1)

        # Assert
        assert ids(result) == [2]

    def test_rare_shared_tags_count_more(self):
        """Test IDF weighting against generic tags."""
        # Arrange
        reference = ContentItem(id=1, genres=('Drama', 'Thriller'))
        catalog = [
            reference,
            ContentItem(id=2, genres=('Drama',), popularity=90),
            ContentItem(id=3, genres=('Thriller',), popularity=10),
            ContentItem(id=4, genres=('Drama',), popularity=5),
            ContentItem(id=5, genres=('Drama',), popularity=1),
        ]

        # Act
        result = RecommendationRanker().similar_to(reference, catalog, 10)

        # Assert
        assert ids(result) == [3, 2, 4, 5]

    def test_more_shared_tags_rank_higher(self):
        """Test that overlap accumulates across tags."""
        # Arrange
        reference = ContentItem(id=1, genres=('Drama', 'Crime'))
        catalog = [
            ContentItem(id=2, genres=('Drama',), popularity=100),
            ContentItem(id=3, genres=('Drama', 'Crime'), popularity=1),
        ]

        # Act
        result = RecommendationRanker().similar_to(reference, catalog, 5)

        # Assert
        assert ids(result) == [3, 2]

    def test_excludes_reference_and_unrelated(self, sample_catalog):
        """Test that the reference and zero-overlap items are left out."""
        # Arrange
        reference = sample_catalog[0]

        # Act
        result = RecommendationRanker().similar_to(reference, sample_catalog, 10)

        # Assert
        assert 1 not in ids(result)
        assert set(ids(result)) == {3, 5}

    def test_ties_broken_by_popularity_then_id(self):
        """Test the tie-break chain."""
        # Arrange
        reference = ContentItem(id=10, genres=('Drama',))
        catalog = [
            ContentItem(id=3, genres=('Drama',), popularity=5),
            ContentItem(id=2, genres=('Drama',), popularity=5),
            ContentItem(id=1, genres=('Drama',), popularity=1),
        ]

        # Act
        result = RecommendationRanker().similar_to(reference, catalog, 3)

        # Assert
        assert ids(result) == [2, 3, 1]

    def test_untagged_reference_falls_back_to_content_type(self):
        """Test same-type popularity fallback."""
        # Arrange
        reference = ContentItem(id=1, content_type='trailer')
        catalog = [
            reference,
            ContentItem(id=2, genres=('Drama',), content_type='movie', popularity=99),
            ContentItem(id=3, content_type='trailer', popularity=10),
            ContentItem(id=4, genres=('Comedy',), content_type='trailer', popularity=40),
        ]

        # Act
        result = RecommendationRanker().similar_to(reference, catalog, 5)

        # Assert
        assert ids(result) == [4, 3]

    def test_untagged_untyped_reference_uses_whole_catalog(self):
        """Test fallback when the reference has neither tags nor type."""
        # Arrange
        reference = ContentItem(id=1)
        catalog = [
            ContentItem(id=2, content_type='movie', popularity=5),
            ContentItem(id=3, content_type='trailer', popularity=50),
        ]

        # Act
        result = RecommendationRanker().similar_to(reference, catalog, 5)

        # Assert
        assert ids(result) == [3, 2]

    def test_empty_catalog_and_zero_limit(self):
        """Test degenerate inputs."""
        # Arrange
        reference = ContentItem(id=1, genres=('Drama',))

        # Act & Assert
        assert RecommendationRanker().similar_to(reference, [], 5) == []
        assert RecommendationRanker().similar_to(reference, [ContentItem(id=2, genres=('Drama',))], 0) == []

    def test_catalog_without_tags(self):
        """Test a tagged reference against an untagged catalog."""
        # Act
        result = RecommendationRanker().similar_to(
            ContentItem(id=1, genres=('Drama',)), [ContentItem(id=2), ContentItem(id=3)], 5
        )

        # Assert
        assert result == []


class TestTrending:
    """Tests for trending ranking."""

    def test_popularity_ranks_with_id_tie_break(self):
        """Test popularity ordering without other signals."""
        # Arrange
        catalog = [
            ContentItem(id=1, popularity=10),
            ContentItem(id=3, popularity=50),
            ContentItem(id=2, popularity=50),
        ]

        # Act
        result = RecommendationRanker().trending(catalog, None, 3)

        # Assert
        assert ids(result) == [2, 3, 1]

    def test_newer_release_can_beat_older_hit(self):
        """Test that recency counteracts long-running popularity."""
        # Arrange
        catalog = [
            ContentItem(id=1, popularity=100, release_date=date(2000, 1, 1)),
            ContentItem(id=2, popularity=80, release_date=date(2020, 1, 1)),
        ]

        # Act
        result = RecommendationRanker().trending(catalog, None, 2)

        # Assert
        assert ids(result) == [2, 1]

    def test_recency_relative_to_explicit_now(self):
        """Test release recency measured from a given date."""
        # Arrange
        ranker = RecommendationRanker()
        catalog = [
            ContentItem(id=1, release_date=date(2024, 1, 1)),
            ContentItem(id=2, release_date=date(2023, 1, 1)),
            ContentItem(id=3),
        ]

        # Act
        scores = ranker.trending_scores(catalog, now=date(2024, 1, 1) + timedelta(days=365))

        # Assert
        assert scores[0] == pytest.approx(0.2 * 0.5, abs=1e-3)
        assert scores[1] < scores[0]
        assert scores[2] == 0.0

    def test_watch_history_signal(self):
        """Test that aggregate watches lift items."""
        # Arrange
        catalog = [ContentItem(id=1, popularity=10), ContentItem(id=2, popularity=10)]
        signal = [WatchHistoryEntry(content_id=2) for _ in range(3)]

        # Act
        result = RecommendationRanker().trending(catalog, signal, 2)

        # Assert
        assert ids(result) == [2, 1]

    def test_watch_count_mapping_signal(self):
        """Test a precomputed count mapping."""
        # Arrange
        catalog = [ContentItem(id=1, popularity=60), ContentItem(id=2, popularity=50)]

        # Act
        result = RecommendationRanker().trending(catalog, {2: 100, 1: 1}, 2)

        # Assert
        assert ids(result) == [2, 1]

    def test_malformed_signal_keys_do_not_raise(self):
        """Test that junk ids in the aggregate signal are ignored."""
        # Arrange
        catalog = [ContentItem(id=1, popularity=5), ContentItem(id=2, popularity=4)]

        # Act
        result = RecommendationRanker().trending(catalog, {'abc': 3, None: 1, 2: 10}, 2)

        # Assert
        assert ids(result) == [2, 1]
        assert ids(RecommendationRanker().recommend(
            catalog, UserPreferenceProfile.empty(), limit=2, watch_counts={None: 1}
        )) == [1, 2]

    def test_infinite_popularity_treated_as_missing(self):
        """Test that non-finite popularity does not poison normalization."""
        # Arrange
        catalog = [ContentItem(id=1, popularity=float('inf')), ContentItem(id=2, popularity=3.0)]

        # Act
        scores = RecommendationRanker().trending_scores(catalog)
        result = RecommendationRanker().trending(catalog, None, 2)

        # Assert
        assert not np.isnan(scores).any()
        assert ids(result) == [2, 1]

    def test_missing_fields_do_not_raise(self):
        """Test malformed optional fields."""
        # Arrange
        catalog = [ContentItem(id=1, popularity=None), ContentItem(id=2, popularity=float('nan')),
                   ContentItem(id=3, popularity=1)]

        # Act
        result = RecommendationRanker().trending(catalog, None, 5)

        # Assert
        assert ids(result) == [3, 1, 2]

    def test_limit_is_upper_bound(self, sample_catalog):
        """Test that small catalogs return fewer items."""
        # Act & Assert
        assert len(RecommendationRanker().trending(sample_catalog, None, 100)) == len(sample_catalog)
        assert RecommendationRanker().trending([], None, 5) == []
        assert RecommendationRanker().trending(sample_catalog, None, 0) == []
