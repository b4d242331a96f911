"""Azure Functions blueprints"""

from .recommendations_bp import bp as recommendations_bp

__all__ = ["recommendations_bp"]
