import logging

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """Register every blueprint the application serves."""
    from .blueprints.api import api_bp

    app.register_blueprint(api_bp)
    logger.debug("Registered blueprints: %s", ", ".join(sorted(app.blueprints)))
