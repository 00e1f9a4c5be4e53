"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in iris/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from iris.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - IRB workflow:        60/minute  (state-changing PATCH/transition calls)
        - Directory & matrix:  200/minute (read-heavy dashboards)
        - Health check:        exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("irb")
    if bp:
        limiter.limit(WRITE_LIMIT)(bp)

    for bp_name in ("certification", "scientist"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — irb: %s, read: %s", WRITE_LIMIT, READ_LIMIT)
