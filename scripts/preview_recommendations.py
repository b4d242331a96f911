"""
Preview recommendations from local JSON dumps of the content API.

Usage:
    # Personalized recommendations for one user's history and ratings
    python scripts/preview_recommendations.py --catalog data/contents.json \
        --history data/history.json --ratings data/ratings.json

    # Content similar to an item
    python scripts/preview_recommendations.py --catalog data/contents.json --similar-to 42

    # Trending content
    python scripts/preview_recommendations.py --catalog data/contents.json --trending
"""

import sys
from pathlib import Path

# Add parent directory to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

import argparse
import json
import logging
from typing import List, Optional

import pandas as pd

from madifa_recommendation_service.ml.preference_extractor import PreferenceExtractor, watched_content_ids
from madifa_recommendation_service.ml.recommendation_ranker import RecommendationRanker
from madifa_recommendation_service.models import ContentItem, RatingEntry, WatchHistoryEntry
from madifa_recommendation_service.services.data_loader_service import parse_records, unwrap_records

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def load_records(path: Optional[Path]) -> list:
    """Load a JSON list (bare or wrapped in an envelope) from disk."""
    if path is None:
        return []
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    with open(path) as f:
        return unwrap_records(json.load(f))


def to_frame(items: List[ContentItem]) -> pd.DataFrame:
    """Tabulate ranked items for display."""
    return pd.DataFrame(
        [
            {
                "rank": rank,
                "id": item.id,
                "title": item.title,
                "genres": ", ".join(item.genres),
                "type": item.content_type,
                "popularity": item.popularity,
                "released": item.release_date,
            }
            for rank, item in enumerate(items, start=1)
        ],
        columns=["rank", "id", "title", "genres", "type", "popularity", "released"],
    )


def main():
    parser = argparse.ArgumentParser(description="Preview recommendations from JSON dumps")
    parser.add_argument("--catalog", type=Path, required=True, help="Catalog JSON file")
    parser.add_argument("--history", type=Path, default=None, help="Watch history JSON file")
    parser.add_argument("--ratings", type=Path, default=None, help="Ratings JSON file")
    parser.add_argument("--watch-counts", type=Path, default=None,
                        help="JSON object of content id -> watch count across users")
    parser.add_argument("--similar-to", type=int, default=None, help="Reference content id")
    parser.add_argument("--trending", action="store_true", help="Show trending content")
    parser.add_argument("--include-watched", action="store_true",
                        help="Keep completed content in personalized results")
    parser.add_argument("-n", type=int, default=10, help="Number of results")
    args = parser.parse_args()

    if args.n < 1:
        parser.error("-n must be at least 1")

    catalog = parse_records(load_records(args.catalog), ContentItem.from_dict, "content")
    logger.info(f"Loaded {len(catalog)} catalog items")

    watch_counts = None
    if args.watch_counts:
        with open(args.watch_counts) as f:
            watch_counts = {int(k): float(v) for k, v in json.load(f).items()}

    ranker = RecommendationRanker()

    if args.similar_to is not None:
        reference = next((item for item in catalog if item.id == args.similar_to), None)
        if reference is None:
            logger.error(f"Content {args.similar_to} not found in catalog")
            sys.exit(1)
        logger.info(f"Content similar to {reference.id} ({reference.title}):")
        items = ranker.similar_to(reference, catalog, limit=args.n)

    elif args.trending:
        logger.info("Trending content:")
        items = ranker.trending(catalog, watch_counts, limit=args.n)

    else:
        history = parse_records(load_records(args.history), WatchHistoryEntry.from_dict, "history")
        ratings = parse_records(load_records(args.ratings), RatingEntry.from_dict, "rating")
        profile = PreferenceExtractor().extract(history, catalog, ratings)
        logger.info(f"Top genres: {profile.top_genres()}")

        exclude = set() if args.include_watched else watched_content_ids(history)
        items = ranker.recommend(catalog, profile, exclude=exclude, limit=args.n, watch_counts=watch_counts)

    print(to_frame(items).to_string(index=False))


if __name__ == "__main__":
    main()
