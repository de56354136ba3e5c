"""ZoneMap Flask Application"""

from flask import Flask, jsonify
from flask_restx import Api
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_compress import Compress
import logging
import structlog
from datetime import datetime

from zonemap.config.settings import settings
from zonemap.api.routes import register_routes
from zonemap.utils.cache import get_cache_statistics
from zonemap.utils.exceptions import GeocodingError, ZoneMapException
from zonemap.utils.monitoring import add_performance_monitoring, get_performance_report

# stdlib logging carries the level; structlog renders
logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if settings.LOG_FORMAT == "json" else structlog.dev.ConsoleRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def _error_status(error: ZoneMapException) -> int:
    # Upstream service failures are not the client's fault
    return 502 if isinstance(error, GeocodingError) else 400


def create_app(config_name: str = "development") -> Flask:
    """Create and configure Flask application"""

    # Create Flask app
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.SECRET_KEY
    app.config["DEBUG"] = settings.DEBUG
    if config_name == "testing":
        app.config["TESTING"] = True
        app.config["RATELIMIT_ENABLED"] = False

    CORS(app,
         origins=settings.ALLOWED_ORIGINS,
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         methods=["GET", "POST", "OPTIONS"],
         supports_credentials=True
    )

    # Entity lists are large and compress well
    Compress(app)
    app.config['COMPRESS_ALGORITHM'] = 'gzip'
    app.config['COMPRESS_LEVEL'] = 6
    app.config['COMPRESS_MIN_SIZE'] = 500

    # Configure Rate Limiting
    limiter = Limiter(
        get_remote_address,
        app=app,
        default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE} per minute"],
        storage_uri=settings.RATE_LIMIT_STORAGE_URI
    )

    # Configure API
    api = Api(
        app,
        version="1.0",
        title="ZoneMap API",
        description="Zone geofencing and viewport property filtering for the real-estate CRM map",
        doc="/docs" if settings.DEBUG else False,
        prefix=f"/api/{settings.API_VERSION}"
    )

    @api.errorhandler(ZoneMapException)
    def handle_api_exception(error):
        """Handle ZoneMap exceptions raised inside API resources"""
        logger.error("ZoneMap Exception", error=str(error), type=type(error).__name__)
        return {
            "error": type(error).__name__,
            "message": str(error)
        }, _error_status(error)

    # Store extensions on app
    app.limiter = limiter
    app.api = api

    # Register routes
    register_routes(api)

    # Add performance monitoring
    add_performance_monitoring(app)

    # Performance metrics endpoint
    @app.route("/metrics/performance")
    def performance_metrics():
        """Get performance metrics"""
        report = get_performance_report()
        report["caches"] = get_cache_statistics()
        return jsonify(report)

    # Health check endpoint (outside API prefix)
    @app.route("/health", methods=["GET"])
    def health_check():
        """Basic health check endpoint"""
        return jsonify({
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "version": settings.API_VERSION,
            "limits": {
                "min_zoom": settings.MIN_ZOOM,
                "sampling_zoom": settings.SAMPLING_ZOOM,
                "viewport_cap": settings.VIEWPORT_CAP,
                "polygon_cap": settings.POLYGON_CAP
            }
        })

    # Error handlers
    @app.errorhandler(ZoneMapException)
    def handle_zonemap_exception(error):
        """Handle custom ZoneMap exceptions"""
        logger.error("ZoneMap Exception", error=str(error), type=type(error).__name__)
        return jsonify({
            "error": type(error).__name__,
            "message": str(error)
        }), _error_status(error)

    @app.errorhandler(404)
    def handle_not_found(error):
        """Handle 404 errors"""
        return jsonify({
            "error": "NotFound",
            "message": "The requested resource was not found"
        }), 404

    @app.errorhandler(500)
    def handle_internal_error(error):
        """Handle 500 errors"""
        logger.error("Internal server error", error=str(error))
        return jsonify({
            "error": "InternalServerError",
            "message": "An internal server error occurred"
        }), 500

    # Add welcome page
    @app.route('/')
    def welcome():
        """Welcome page with API documentation"""
        prefix = f"/api/{settings.API_VERSION}"
        return jsonify({
            "message": "Welcome to the ZoneMap API",
            "version": "1.0",
            "status": "operational",
            "documentation": "/docs" if settings.DEBUG else "Contact admin for API docs",
            "health_check": "/health",
            "endpoints": {
                "visible_set": {
                    "method": "POST",
                    "url": f"{prefix}/viewport/visible",
                    "description": "Entities to render for a viewport, zone polygon and search term"
                },
                "validate_zone": {
                    "method": "POST",
                    "url": f"{prefix}/zones/validate",
                    "description": "Check a drawn polygon (vertex count, self-intersection, area)"
                },
                "zone_contains": {
                    "method": "POST",
                    "url": f"{prefix}/zones/contains",
                    "description": "Ids of entities inside a polygon"
                },
                "assign_zones": {
                    "method": "POST",
                    "url": f"{prefix}/zones/assign",
                    "description": "First saved zone containing each entity"
                },
                "geocode_batch": {
                    "method": "POST",
                    "url": f"{prefix}/geocode/batch",
                    "description": f"Geocode up to {settings.GEOCODE_BATCH_MAX} addresses, one per {settings.GEOCODE_MIN_INTERVAL}s"
                },
                "reverse_geocode": {
                    "method": "GET",
                    "url": f"{prefix}/geocode/reverse?lat=..&lng=..",
                    "description": "Address and population for a map position"
                }
            }
        })

    # Log app startup
    logger.info(
        "ZoneMap Flask app created",
        debug=settings.DEBUG,
        min_zoom=settings.MIN_ZOOM,
        viewport_cap=settings.VIEWPORT_CAP,
        polygon_cap=settings.POLYGON_CAP
    )

    return app

