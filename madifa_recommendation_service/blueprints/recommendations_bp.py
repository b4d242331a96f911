"""Recommendation endpoints."""
import azure.functions as func
import logging
import json
from typing import Optional

import requests

from madifa_recommendation_service.config import get_default_recommendations, get_max_recommendations
from madifa_recommendation_service.services import ContentNotFoundError, PersonalizedRecommendationService

# Initialize blueprint
bp = func.Blueprint()

# Initialize service (singleton pattern)
recommendation_service = PersonalizedRecommendationService()

logger = logging.getLogger(__name__)


def _json_response(body: dict, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body, default=str),
        status_code=status_code,
        mimetype="application/json"
    )


def _error(message: str, status_code: int) -> func.HttpResponse:
    return _json_response({"error": message}, status_code)


def _parse_id(req: func.HttpRequest, name: str) -> tuple[Optional[int], Optional[func.HttpResponse]]:
    """Read an integer route parameter, or build the 400 response explaining why not."""
    raw = req.route_params.get(name)
    if not raw:
        return None, _error(f"{name} is required", 400)
    try:
        return int(raw), None
    except ValueError:
        return None, _error(f"{name} must be an integer", 400)


def _parse_n(req: func.HttpRequest) -> tuple[Optional[int], Optional[func.HttpResponse]]:
    max_n = get_max_recommendations()
    try:
        n = int(req.params.get('n', get_default_recommendations()))
    except ValueError:
        return None, _error("n must be an integer", 400)
    if n < 1 or n > max_n:
        return None, _error(f"n must be between 1 and {max_n}", 400)
    return n, None


@bp.route(route="users/{user_id}/recommendations", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_user_recommendations(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get personalized recommendations for a user.

    Query Parameters:
        - n: Number of recommendations (default: 10, max: 50)
        - exclude_watched: Hide completed content (default: true)
        - exclude: Comma-separated content ids to hide
    """
    try:
        user_id, error = _parse_id(req, 'user_id')
        if error:
            return error

        n, error = _parse_n(req)
        if error:
            return error

        exclude_watched = req.params.get('exclude_watched', 'true').lower() != 'false'
        try:
            exclude_ids = {
                int(value) for value in req.params.get('exclude', '').split(',') if value.strip()
            }
        except ValueError:
            return _error("exclude must be a comma-separated list of integers", 400)

        result = recommendation_service.get_recommendations_for_user(
            user_id=user_id,
            n=n,
            exclude_watched=exclude_watched,
            exclude_ids=exclude_ids
        )
        return _json_response(result)

    except requests.RequestException as e:
        logger.error(f"Content API unavailable: {str(e)}", exc_info=True)
        return _error("Content service unavailable", 502)
    except Exception as e:
        logger.error(f"Error getting recommendations: {str(e)}", exc_info=True)
        return _error("Internal server error", 500)


@bp.route(route="users/{user_id}/profile", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_user_profile(req: func.HttpRequest) -> func.HttpResponse:
    """Get the taste profile derived for a user."""
    try:
        user_id, error = _parse_id(req, 'user_id')
        if error:
            return error

        profile = recommendation_service.get_profile(user_id)
        return _json_response({"user_id": user_id, "profile": profile.to_dict()})

    except requests.RequestException as e:
        logger.error(f"Content API unavailable: {str(e)}", exc_info=True)
        return _error("Content service unavailable", 502)
    except Exception as e:
        logger.error(f"Error building profile: {str(e)}", exc_info=True)
        return _error("Internal server error", 500)


@bp.route(route="contents/{content_id}/similar", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_similar_content(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get content similar to a catalog item.

    Query Parameters:
        - n: Number of results (default: 10, max: 50)
    """
    try:
        content_id, error = _parse_id(req, 'content_id')
        if error:
            return error

        n, error = _parse_n(req)
        if error:
            return error

        try:
            result = recommendation_service.get_similar_content(content_id=content_id, n=n)
        except ContentNotFoundError:
            return _json_response({
                "content_id": content_id,
                "recommendations": [],
                "message": "Content not found"
            }, 404)

        return _json_response(result)

    except requests.RequestException as e:
        logger.error(f"Content API unavailable: {str(e)}", exc_info=True)
        return _error("Content service unavailable", 502)
    except Exception as e:
        logger.error(f"Error getting similar content: {str(e)}", exc_info=True)
        return _error("Internal server error", 500)


@bp.route(route="contents/trending", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_trending_content(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get trending content.

    Query Parameters:
        - n: Number of results (default: 10, max: 50)
    """
    try:
        n, error = _parse_n(req)
        if error:
            return error

        return _json_response(recommendation_service.get_trending(n=n))

    except requests.RequestException as e:
        logger.error(f"Content API unavailable: {str(e)}", exc_info=True)
        return _error("Content service unavailable", 502)
    except Exception as e:
        logger.error(f"Error getting trending content: {str(e)}", exc_info=True)
        return _error("Internal server error", 500)


# noinspection PyUnusedLocal
@bp.route(route="recommendations/health", methods=["GET"])
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint."""
    return _json_response({
        "status": "healthy",
        "service": "madifa-recommendation-service",
        "version": "1.0.0"
    })
