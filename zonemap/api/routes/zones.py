"""Zone polygon endpoints"""

from flask import request
from flask_restx import Namespace, Resource, fields
import structlog

from zonemap.api.routes.payloads import parse_entities, parse_polygon, parse_zones
from zonemap.services.zone_assigner import ZoneAssigner
from zonemap.utils.exceptions import ValidationError
from zonemap.utils.geometry import describe_polygon, is_point_in_polygon, validate_polygon

logger = structlog.get_logger(__name__)

zones_ns = Namespace("zones", description="Zone polygon operations")

polygon_request_model = zones_ns.model("PolygonRequest", {
    "polygon": fields.List(fields.Raw, required=True, description="Vertices as {lat, lng}")
})

contains_request_model = zones_ns.model("ContainsRequest", {
    "polygon": fields.List(fields.Raw, required=True, description="Vertices as {lat, lng}"),
    "entities": fields.List(fields.Raw, required=True)
})

assign_request_model = zones_ns.model("AssignRequest", {
    "zones": fields.List(fields.Raw, required=True, description="Zones with id, name, coordinates"),
    "entities": fields.List(fields.Raw, required=True),
    "current": fields.Raw(description="Stored entity id -> zone id mapping")
})


def _json_body():
    data = request.get_json(silent=True)
    if not data:
        raise ValidationError("JSON body is required")
    return data


@zones_ns.route("/validate")
class PolygonValidation(Resource):
    """Check a drawn polygon before saving it as a zone"""

    @zones_ns.doc("validate_polygon")
    @zones_ns.expect(polygon_request_model)
    def post(self):
        """Vertex count, self-intersection, area and centroid"""
        polygon = parse_polygon(_json_body())
        return describe_polygon(polygon)


@zones_ns.route("/contains")
class PolygonContains(Resource):
    """Entities inside a zone polygon"""

    @zones_ns.doc("entities_in_polygon")
    @zones_ns.expect(contains_request_model)
    def post(self):
        """Return the ids of entities whose position lies in the polygon"""
        data = _json_body()
        polygon = validate_polygon(parse_polygon(data))
        entities = parse_entities(data)

        inside = [
            e.id for e in entities
            if e.has_valid_position and is_point_in_polygon((e.lat, e.lng), polygon)
        ]

        logger.info("Polygon containment", entities=len(entities), inside=len(inside))
        return {
            "count": len(inside),
            "total": len(entities),
            "ids": inside
        }


@zones_ns.route("/assign")
class ZoneAssignment(Resource):
    """Place entities in saved zones"""

    @zones_ns.doc("assign_zones")
    @zones_ns.expect(assign_request_model)
    def post(self):
        """First zone containing each entity, None when it is in no zone"""
        data = _json_body()
        zones = parse_zones(data)
        entities = parse_entities(data)

        current = data.get("current") or {}
        if not isinstance(current, dict):
            raise ValidationError("'current' must be an object")

        assignment = ZoneAssigner(zones).assign(entities, current=current)
        return {
            "assignments": assignment.zones,
            "counts": assignment.counts(),
            "updated": assignment.updated,
            "skipped": assignment.skipped
        }
