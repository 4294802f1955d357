"""
F01 - Flask application factory for the DKIM/DMARC publication checker.

Creates and configures the Flask application, registers the API blueprint,
initialises Flask-SQLAlchemy and wires up the per-application DNS resolver,
request throttler and query log.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from flask import Flask, Response
from flask_sqlalchemy import SQLAlchemy

from mailauth.config import Config, parse_rate_limit_overrides

# ---------------------------------------------------------------------------
# Extension instances (created here, initialised in create_app)
# ---------------------------------------------------------------------------
db: SQLAlchemy = SQLAlchemy()

EXTENSION_KEY = "mailauth"


def _configure_logging(debug: bool) -> None:
    """Configure root logger for the application.

    Logging is sent to stdout so most WSGI hosts capture it automatically
    without requiring file handlers.

    Format: timestamp  level  logger-name  message

    Args:
        debug: When True, sets the root level to DEBUG.  Otherwise INFO.
    """
    level = logging.DEBUG if debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)-8s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%SZ",
        )
    )

    root_logger = logging.getLogger()
    # Avoid adding duplicate handlers if create_app() is called multiple times
    # (e.g. in tests).
    if not root_logger.handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


def create_app(
    config_object: object = Config,
    *,
    resolver: Any = None,
    throttler: Any = None,
    query_log: Any = None,
) -> Flask:
    """Application factory.

    The resolver, throttler and query log are owned by the application
    instance rather than by module globals, so tests can inject isolated
    instances.  Any dependency left as None is built from the config.

    Args:
        config_object: Configuration class or object to load settings from.
        resolver: Optional DnsResolver (or compatible fake).
        throttler: Optional RequestThrottler.
        query_log: Optional QueryLog.

    Returns:
        A fully configured Flask application instance.
    """
    from mailauth.checker.resolver import DnsResolver
    from mailauth.utils.query_log import QueryLog
    from mailauth.utils.rate_limit import RequestThrottler

    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(debug=app.debug)

    # ------------------------------------------------------------------
    # Initialise extensions
    # ------------------------------------------------------------------
    db.init_app(app)
    from mailauth import models  # noqa: F401  (registers the query_log table)

    if resolver is None:
        resolver = DnsResolver(
            timeout=float(app.config["DNS_TIMEOUT_SECONDS"]),
            trusted_resolver=app.config["DNS_TRUSTED_RESOLVER"],
        )
    if throttler is None:
        overrides = app.config["RATE_LIMIT_OVERRIDES"]
        if isinstance(overrides, str):
            overrides = parse_rate_limit_overrides(overrides)
        throttler = RequestThrottler(
            default_limit=int(app.config["RATE_LIMIT_PER_HOUR"]),
            overrides=overrides,
        )
    if query_log is None:
        query_log = QueryLog(
            max_entries=int(app.config["QUERY_LOG_MAX_ENTRIES"]),
            persist=bool(app.config["QUERY_LOG_PERSIST"]),
        )

    app.extensions[EXTENSION_KEY] = {
        "resolver": resolver,
        "throttler": throttler,
        "query_log": query_log,
    }

    # ------------------------------------------------------------------
    # Register blueprints
    # ------------------------------------------------------------------
    from mailauth.api import bp as api_bp

    app.register_blueprint(api_bp)

    # ------------------------------------------------------------------
    # Security headers
    # ------------------------------------------------------------------

    @app.after_request
    def set_security_headers(response: Response) -> Response:
        """Attach security-related HTTP response headers.

        The service only returns JSON, so the content security policy
        forbids every resource origin.
        """
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response

    logging.getLogger(__name__).debug(
        "Application created (timeout=%ss, persist_query_log=%s)",
        app.config["DNS_TIMEOUT_SECONDS"],
        app.config["QUERY_LOG_PERSIST"],
    )
    return app


def get_services(app: Flask) -> dict[str, Any]:
    """Return the resolver/throttler/query-log mapping owned by *app*."""
    return app.extensions[EXTENSION_KEY]
