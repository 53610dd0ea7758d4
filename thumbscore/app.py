"""
Thumbnail Scoring Application
=============================
Main application entry point that configures Flask and registers blueprints.

This module:
- Creates the Flask application factory
- Builds the model registry, scorer and recommendation service once
- Registers the scoring blueprint
- Maps typed errors to JSON responses

Route Organization:
- /health          -> Health check
- /api/scoring/*   -> Scoring, recommendations and model management
"""

from flask import Flask, jsonify
from dotenv import load_dotenv
from flask_cors import CORS

from .routes import scoring_bp
from .config import get_config, set_config, get_environment_config, apply_environment_overrides
from .errors import ThumbScoreError
from .logging_config import get_research_logger
from .model_store import ModelRegistry
from .scoring import ThumbnailScorer
from .services.recommendation_service import RecommendationService

# Load environment variables
load_dotenv()

logger = get_research_logger("app", log_to_file=False)


def create_app(config_override=None, registry=None, recommendation_service=None):
    """
    Application factory function.

    Args:
        config_override: Optional AppConfig instance to use instead of global config
        registry: Optional ModelRegistry (defaults to one built from config)
        recommendation_service: Optional RecommendationService

    Returns:
        Configured Flask application instance
    """
    app_config = config_override or get_config()

    app = Flask(__name__)
    CORS(app, origins=app_config.flask.cors_origins)
    app.config['SECRET_KEY'] = app_config.flask.secret_key

    # Collaborators are built once and shared by every request
    app.app_config = app_config
    app.model_registry = registry or ModelRegistry.from_config(app_config)
    app.scorer = ThumbnailScorer(
        app.model_registry,
        requires_faces=app_config.scoring.category_requires_faces
    )
    app.recommendation_service = (
        recommendation_service or RecommendationService(app_config.gemini)
    )

    # ==========================================================================
    # REGISTER BLUEPRINTS
    # ==========================================================================

    app.register_blueprint(scoring_bp, url_prefix='/api/scoring')

    logger.info(
        "Initialized Flask app",
        extra={
            'experiment': app_config.research.experiment_name,
            'model_path': str(app.model_registry.model_path),
            'llm_recommendations': app.recommendation_service.llm_enabled,
        }
    )

    # ==========================================================================
    # CORE ROUTES
    # ==========================================================================

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint for monitoring."""
        return {
            'status': 'healthy',
            'experiment': app_config.research.experiment_name,
            'version': '1.0.0'
        }, 200

    # ==========================================================================
    # ERROR HANDLERS
    # ==========================================================================

    @app.errorhandler(ThumbScoreError)
    def handle_thumbscore_error(error):
        """Typed errors carry their own status code."""
        if error.status_code >= 500:
            logger.error(f"{type(error).__name__}: {error}")
        return jsonify({'error': str(error), 'type': type(error).__name__}), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        return jsonify({'error': 'Resource not found', 'type': 'NotFound'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed', 'type': 'MethodNotAllowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        logger.error(f"Internal server error: {error}")
        return jsonify({'error': 'Internal server error', 'type': 'InternalServerError'}), 500

    return app


if __name__ == '__main__':
    # THUMBSCORE_ENV=production selects the production preset
    config = apply_environment_overrides(get_environment_config())
    set_config(config)
    app = create_app(config)
    app.run(
        debug=config.flask.debug,
        host=config.flask.host,
        port=config.flask.port
    )
