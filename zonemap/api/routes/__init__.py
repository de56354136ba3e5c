"""API Routes Registration"""

from flask_restx import Api

def register_routes(api: Api) -> None:
    """Register all API routes"""

    # Import namespaces
    from zonemap.api.routes.viewport import viewport_ns
    from zonemap.api.routes.zones import zones_ns
    from zonemap.api.routes.geocode import geocode_ns

    # Register namespaces
    api.add_namespace(viewport_ns, path="/viewport")
    api.add_namespace(zones_ns, path="/zones")
    api.add_namespace(geocode_ns, path="/geocode")
