"""Visible-set endpoints for map rendering"""

from flask import request
from flask_restx import Namespace, Resource, fields
import structlog

from zonemap.api.routes.payloads import parse_entities, parse_polygon, parse_viewport
from zonemap.models import SortKey
from zonemap.services.viewport_filter import FilterQuery, ViewportPropertyFilter
from zonemap.utils.exceptions import ValidationError

logger = structlog.get_logger(__name__)

viewport_ns = Namespace("viewport", description="Viewport-driven property filtering")

# Request/Response models
vertex_model = viewport_ns.model("Vertex", {
    "lat": fields.Float(required=True),
    "lng": fields.Float(required=True)
})

bounds_model = viewport_ns.model("Bounds", {
    "north": fields.Float(required=True),
    "south": fields.Float(required=True),
    "east": fields.Float(required=True),
    "west": fields.Float(required=True)
})

viewport_model = viewport_ns.model("Viewport", {
    "bounds": fields.Nested(bounds_model, required=True),
    "zoom": fields.Integer(required=True, description="Map zoom level")
})

visible_request_model = viewport_ns.model("VisibleSetRequest", {
    "entities": fields.List(fields.Raw, required=True, description="Entities with id, lat, lng and descriptive fields"),
    "viewport": fields.Nested(viewport_model, required=True),
    "polygon": fields.List(fields.Nested(vertex_model), description="Active zone polygon, empty for none"),
    "search": fields.String(default="", description="Free-text search term"),
    "sort": fields.String(default="address", enum=[k.value for k in SortKey]),
    "floor": fields.String(description="Exact floor filter"),
    "show_full_list": fields.Boolean(default=False, description="Skip the viewport bounds stage")
})

visible_response_model = viewport_ns.model("VisibleSetResponse", {
    "count": fields.Integer(description="Entities returned"),
    "total": fields.Integer(description="Matches before the cap"),
    "candidates": fields.Integer(description="Entities after the polygon/sampling stage"),
    "cap": fields.Integer,
    "polygon_active": fields.Boolean,
    "truncated": fields.Boolean,
    "entities": fields.List(fields.Raw)
})

@viewport_ns.route("/visible")
class VisibleSet(Resource):
    """Compute what the map should render"""

    @viewport_ns.doc("compute_visible_set")
    @viewport_ns.expect(visible_request_model)
    @viewport_ns.marshal_with(visible_response_model)
    def post(self):
        """Filter entities by zoom, zone polygon, search term and viewport bounds"""
        data = request.get_json(silent=True)
        if not data:
            raise ValidationError("JSON body is required")

        try:
            sort_key = SortKey(data.get("sort") or SortKey.ADDRESS.value)
        except ValueError:
            raise ValidationError(f"Unknown sort key: {data.get('sort')}")

        query = FilterQuery(
            viewport=parse_viewport(data),
            polygon=parse_polygon(data),
            search=str(data.get("search") or ""),
            sort_key=sort_key,
            floor=data.get("floor") or None,
            show_full_list=bool(data.get("show_full_list", False)),
        )

        entities = parse_entities(data)
        result = ViewportPropertyFilter().compute(entities, query)

        logger.info(
            "Visible set request",
            entities=len(entities),
            visible=len(result),
            total=result.total,
            zoom=query.viewport.zoom
        )
        return result.to_dict()
