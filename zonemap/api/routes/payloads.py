"""Request payload parsing shared by the API namespaces"""

from typing import Any, List, Mapping, Tuple

from zonemap.models import GeoEntity, Vertex, Viewport, Zone
from zonemap.utils.exceptions import ValidationError
from zonemap.utils.geometry import coerce_vertices


def parse_entities(data: Mapping[str, Any]) -> List[GeoEntity]:
    raw = data.get("entities")
    if not isinstance(raw, list):
        raise ValidationError("'entities' must be a list")
    try:
        return [GeoEntity.from_dict(item) for item in raw]
    except (TypeError, ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid entity: {str(e)}")


def parse_polygon(data: Mapping[str, Any], key: str = "polygon") -> Tuple[Vertex, ...]:
    raw = data.get(key) or []
    if not isinstance(raw, list):
        raise ValidationError(f"'{key}' must be a list of vertices")
    try:
        return coerce_vertices(raw)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid polygon vertex: {str(e)}")


def parse_viewport(data: Mapping[str, Any]) -> Viewport:
    raw = data.get("viewport")
    if not isinstance(raw, dict):
        raise ValidationError("'viewport' with bounds and zoom is required")
    try:
        return Viewport.from_dict(raw)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValidationError(f"Invalid viewport: {str(e)}")


def parse_zones(data: Mapping[str, Any]) -> List[Zone]:
    raw = data.get("zones")
    if not isinstance(raw, list):
        raise ValidationError("'zones' must be a list")
    try:
        return [Zone.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid zone: {str(e)}")
