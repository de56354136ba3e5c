#!/usr/bin/env python3
"""WSGI entry point"""

import os

from zonemap.app import create_app

app = create_app(os.environ.get("APP_CONFIG", "production"))

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    app.run(host="0.0.0.0", port=port)
