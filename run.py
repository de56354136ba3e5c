#!/usr/bin/env python3
"""Run the ZoneMap Flask application"""

from zonemap.app import create_app
from zonemap.config.settings import settings
from zonemap.utils.exceptions import ConfigurationError

if __name__ == "__main__":
    # Validate settings
    try:
        settings.validate()
        print("✓ Settings validated")
        print(f"  - Zoom gate: {settings.MIN_ZOOM} (sampling below {settings.SAMPLING_ZOOM})")
        print(f"  - Caps: viewport {settings.VIEWPORT_CAP}, polygon {settings.POLYGON_CAP}")
        print(f"  - Geocoder: {settings.GEOCODER_BASE_URL}")
    except ConfigurationError as e:
        print(f"✗ Settings validation failed: {e}")
        exit(1)

    # Run app
    print(f"\n🚀 Starting ZoneMap API on http://{settings.API_HOST}:{settings.API_PORT}")
    print(f"📚 API Docs: http://{settings.API_HOST}:{settings.API_PORT}/docs\n")

    create_app().run(
        host=settings.API_HOST,
        port=settings.API_PORT,
        debug=settings.DEBUG
    )
