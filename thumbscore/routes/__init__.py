"""
API Routes Package
==================
Flask blueprints for the HTTP API.
"""

from .scoring_routes import scoring_bp

__all__ = ['scoring_bp']
