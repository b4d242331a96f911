"""Shared test fixtures and configuration for pytest."""
import json
from datetime import date, datetime, timedelta, UTC
from pathlib import Path
from typing import Dict, List
from unittest.mock import Mock

import pytest

from madifa_recommendation_service.models import (
    ContentItem,
    RatingEntry,
    WatchHistoryEntry,
)


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


# ===== Sample Data Fixtures =====

@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return NOW


@pytest.fixture
def sample_content_data() -> Dict:
    """Sample content API record."""
    return {
        'id': 1,
        'title': 'Sarafina!',
        'description': 'A schoolgirl in Soweto finds her voice.',
        'genres': ['Drama', 'Musical'],
        'category': 'Classics',
        'contentType': 'movie',
        'popularity': 87,
        'releaseDate': '1992-09-18',
        'isPremium': True,
        'duration': 6960,
        'thumbnailUrl': 'https://example.com/sarafina.jpg',
    }


@pytest.fixture
def sample_catalog() -> List[ContentItem]:
    """Small catalog spanning several genres and types."""
    return [
        ContentItem(id=1, title='Tsotsi', genres=('Drama', 'Crime'), content_type='movie',
                    popularity=40, release_date=date(2005, 8, 1)),
        ContentItem(id=2, title='Keeping Up with the Kandasamys', genres=('Comedy',),
                    content_type='movie', popularity=90, release_date=date(2017, 6, 2)),
        ContentItem(id=3, title='Inxeba', genres=('Drama',), content_type='movie',
                    popularity=60, release_date=date(2017, 2, 3), is_premium=True, duration=5580),
        ContentItem(id=4, title='Mrs Right Guy', genres=('Comedy', 'Romance'), content_type='movie',
                    popularity=30, release_date=date(2016, 2, 12)),
        ContentItem(id=5, title='Five Fingers for Marseilles', genres=('Western', 'Crime'),
                    content_type='movie', popularity=55, release_date=date(2018, 4, 6)),
        ContentItem(id=6, title='Jerusalema', genres=('Music',), content_type='music_video',
                    popularity=99, release_date=date(2019, 11, 29), duration=340),
    ]


@pytest.fixture
def sample_history(now) -> List[WatchHistoryEntry]:
    """History favouring drama and crime."""
    return [
        WatchHistoryEntry(content_id=1, watched_at=now - timedelta(days=1), completed=True,
                          watch_time_percentage=100),
        WatchHistoryEntry(content_id=5, watched_at=now - timedelta(days=3), completed=False,
                          watch_time_percentage=50),
    ]


@pytest.fixture
def sample_ratings() -> List[RatingEntry]:
    return [RatingEntry(content_id=1, rating=5)]


# ===== Mock Fixtures =====

@pytest.fixture
def mock_data_loader(sample_catalog, sample_history, sample_ratings):
    """Mock ContentDataLoader serving the sample data."""
    mock = Mock()
    mock.get_catalog.return_value = sample_catalog
    mock.get_watch_history.return_value = sample_history
    mock.get_ratings.return_value = sample_ratings
    mock.get_watch_counts.return_value = {}
    return mock


# ===== Configuration Fixtures =====

@pytest.fixture
def mock_config(monkeypatch):
    """Mock configuration values."""
    monkeypatch.setenv('CONTENT_API_URL', 'http://content:5000/api')
    monkeypatch.setenv('RECENCY_HALF_LIFE_DAYS', '14')
    monkeypatch.setenv('MAX_RECOMMENDATIONS', '50')


@pytest.fixture
def temp_data_dir(tmp_path) -> Path:
    """Temporary directory with JSON dumps of the sample data."""
    contents = [
        {'id': 1, 'title': 'Tsotsi', 'genres': ['Drama'], 'popularity': 40},
        {'id': 2, 'title': 'Kandasamys', 'genres': ['Comedy'], 'popularity': 90},
    ]
    with open(tmp_path / 'contents.json', 'w') as f:
        json.dump({'contents': contents}, f)
    with open(tmp_path / 'history.json', 'w') as f:
        json.dump([{'contentId': 1, 'watchedAt': '2024-06-01T10:00:00Z', 'completed': True}], f)
    return tmp_path
