"""
Rate limiting configuration.

The Limiter instance is created in app/__init__.py with no default limits;
this module applies the forms write limit to the mutation routes.

Limits are keyed by actor token when the client sends one, so team
members sharing a NAT address do not starve each other.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import request as flask_request

logger = logging.getLogger(__name__)

# Forms blueprint endpoints that mutate state
WRITE_ENDPOINTS = ("write_form", "upload_attachment", "delete_attachment")


def actor_rate_limit_key() -> str:
    """Rate limit key: actor token if available, else remote IP."""
    token = (flask_request.headers.get("X-Actor-Token") or "").strip()
    if token:
        return f"actor:{token}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to the forms write endpoints.

    Reads and health checks stay unlimited.  Rate limiting is disabled in
    testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    write_limit = app.config.get("FORMS_WRITE_RATE_LIMIT", "120 per minute")
    for endpoint in WRITE_ENDPOINTS:
        view = app.view_functions.get(f"forms_bp.{endpoint}")
        if view is not None:
            app.view_functions[f"forms_bp.{endpoint}"] = limiter.limit(
                write_limit, key_func=actor_rate_limit_key,
            )(view)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured - forms writes: %s", write_limit)
