"""
CreatorConnect Scoring Service
Flask application factory
"""
import os
import re
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Import models so Flask-Migrate sees every table
    from . import models  # noqa: F401

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Configure CORS - allow the web app origins
    cors_origins = [
        'http://localhost:5173',
        'http://127.0.0.1:5173',
    ]
    frontend_url = os.getenv('FRONTEND_URL')
    if frontend_url:
        cors_origins.append(frontend_url)
    if config_name != 'production':
        cors_origins.append(re.compile(r'https://.*\.trycloudflare\.com'))
    CORS(
        app,
        origins=cors_origins,
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-Brand-ID', 'X-Creator-ID', 'X-Operator-Email'],
    )

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Background scheduler for metric awards, retries and reconciliation
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'creatorconnect-scoring'}

    @app.route('/')
    def index():
        return {'service': 'CreatorConnect Scoring', 'status': 'running', 'version': '1.0.0'}

    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    # Scoring configuration, events and ledger
    from .api.scoring import scoring_bp

    # Tier ladder
    from .api.tiers import tiers_bp

    # Memberships (brand side and creator side)
    from .api.memberships import memberships_bp, creator_memberships_bp

    # Campaign activity intake and campaign leaderboard
    from .api.campaigns import campaigns_bp

    # Brand leaderboard
    from .api.leaderboards import leaderboards_bp

    # Campaign prizes, scoring overrides and reward review
    from .api.rewards import campaign_rewards_bp, rewards_bp, creator_rewards_bp

    app.register_blueprint(scoring_bp, url_prefix='/api/brands')
    app.register_blueprint(tiers_bp, url_prefix='/api/brands')
    app.register_blueprint(memberships_bp, url_prefix='/api/brands')
    app.register_blueprint(leaderboards_bp, url_prefix='/api/brands')
    app.register_blueprint(rewards_bp, url_prefix='/api/brands')
    app.register_blueprint(creator_memberships_bp, url_prefix='/api/creators')
    app.register_blueprint(creator_rewards_bp, url_prefix='/api/creators')
    app.register_blueprint(campaigns_bp, url_prefix='/api/campaigns')
    app.register_blueprint(campaign_rewards_bp, url_prefix='/api/campaigns')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from .utils.errors import (
        exception_response, error_response, bad_request, not_found, internal_error, ErrorCode
    )
    from .utils.exceptions import CreatorConnectError

    @app.errorhandler(CreatorConnectError)
    def business_error(error):
        return exception_response(error)

    @app.errorhandler(400)
    def handle_bad_request(error):
        return bad_request('Bad request')

    @app.errorhandler(404)
    def handle_not_found(error):
        return not_found('Not found')

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.INVALID_REQUEST, 405, log_error=False)

    @app.errorhandler(500)
    def handle_internal_error(error):
        db.session.rollback()
        original = getattr(error, 'original_exception', None) or error
        return internal_error('Internal server error', details={'error': str(original)})
