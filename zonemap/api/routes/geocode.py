"""Geocoding endpoints"""

from flask import request
from flask_restx import Namespace, Resource, fields
import structlog

from zonemap.config.settings import settings
from zonemap.services.geocoding_batch import BatchGeocoder
from zonemap.services.geocoding_client import GeocodingClient
from zonemap.utils.exceptions import ValidationError

logger = structlog.get_logger(__name__)

geocode_ns = Namespace("geocode", description="Address geocoding operations")

batch_item_model = geocode_ns.model("GeocodeItem", {
    "id": fields.String(required=True, description="Entity id"),
    "address": fields.String(required=True, description="Free-text address")
})

batch_request_model = geocode_ns.model("GeocodeBatchRequest", {
    "items": fields.List(fields.Nested(batch_item_model), required=True,
                         description=f"Addresses to geocode (max {settings.GEOCODE_BATCH_MAX})")
})

# Shared so the throttle holds across requests
_client = None


def get_client() -> GeocodingClient:
    global _client
    if _client is None:
        _client = GeocodingClient()
    return _client


@geocode_ns.route("/batch")
class GeocodeBatch(Resource):
    """Sequential, rate-limited batch geocoding"""

    @geocode_ns.doc("geocode_batch")
    @geocode_ns.expect(batch_request_model)
    def post(self):
        """Geocode addresses one per interval; failures are reported, not raised"""
        data = request.get_json(silent=True) or {}
        items = data.get("items")

        if not items or not isinstance(items, list):
            raise ValidationError("No items provided")

        if len(items) > settings.GEOCODE_BATCH_MAX:
            raise ValidationError(f"Maximum {settings.GEOCODE_BATCH_MAX} addresses per batch request")

        try:
            pairs = [(str(item["id"]), str(item.get("address") or "")) for item in items]
        except (KeyError, TypeError, AttributeError):
            raise ValidationError("Each item needs an id and an address")

        result = BatchGeocoder(client=get_client()).run(pairs)

        return {
            "summary": result.summary(),
            "located": {item_id: v.to_dict() for item_id, v in result.located.items()},
            "not_found": result.not_found
        }


@geocode_ns.route("/reverse")
class ReverseGeocode(Resource):
    """Coordinates to address"""

    @geocode_ns.doc("reverse_geocode", params={"lat": "Latitude", "lng": "Longitude"})
    def get(self):
        """Resolve a map click into a display address and population"""
        lat = request.args.get("lat", type=float)
        lng = request.args.get("lng", type=float)

        if lat is None or lng is None:
            raise ValidationError("Query parameters 'lat' and 'lng' are required")

        return get_client().reverse(lat, lng)
