"""Geo-tagged entities, zones and viewport types shared by the services"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

# Keys accepted for coordinates in incoming payloads
_LAT_KEYS = ("lat", "latitude")
_LNG_KEYS = ("lng", "lon", "longitude")
_SIZE_KEYS = ("size", "constructed_area", "constructedArea")


def _to_float(value: Any) -> Optional[float]:
    """Coerce a payload value into a float, None when it is not numeric"""
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(",", ".")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None


def _first(data: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


class SortKey(str, Enum):
    """Sort orders available to the visible set"""
    ADDRESS = "address"
    FLOOR = "floor"
    SIZE = "size"


@dataclass(frozen=True)
class Vertex:
    """A polygon vertex"""

    lat: float
    lng: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Vertex":
        lat = _to_float(_first(data, _LAT_KEYS))
        lng = _to_float(_first(data, _LNG_KEYS))
        if lat is None or lng is None:
            raise ValueError(f"Vertex needs numeric lat/lng, got {dict(data)}")
        return cls(lat=lat, lng=lng)

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class GeoEntity:
    """
    Any displayable item with a position (a property, a cadastral unit...)

    Entities are never mutated by the core, only filtered and sorted.
    Descriptive fields not modelled explicitly live in ``attributes`` and are
    still reachable by the search stage through ``field_text``.
    """

    id: str
    lat: Optional[float]
    lng: Optional[float]
    address: str = ""
    floor: str = ""
    size: Optional[float] = None
    attributes: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @property
    def has_valid_position(self) -> bool:
        return (
            self.lat is not None and self.lng is not None
            and math.isfinite(self.lat) and math.isfinite(self.lng)
        )

    def field_text(self, name: str) -> str:
        """Text value of a searchable field, empty string when absent"""
        if name in ("id", "address", "floor"):
            value = getattr(self, name)
        else:
            value = self.attributes.get(name)
        return "" if value is None else str(value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GeoEntity":
        """Build an entity from a loosely shaped JSON object"""
        if data.get("id") in (None, ""):
            raise ValueError("Entity id is required")

        known = {"id", "address", "floor", *_LAT_KEYS, *_LNG_KEYS, *_SIZE_KEYS}
        return cls(
            id=str(data["id"]),
            lat=_to_float(_first(data, _LAT_KEYS)),
            lng=_to_float(_first(data, _LNG_KEYS)),
            address=str(data.get("address") or ""),
            floor=str(data.get("floor") or ""),
            size=_to_float(_first(data, _SIZE_KEYS)),
            attributes={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lat": self.lat,
            "lng": self.lng,
            "address": self.address,
            "floor": self.floor,
            "size": self.size,
            **dict(self.attributes),
        }


@dataclass(frozen=True)
class Bounds:
    """Viewport bounds in degrees; west > east means the box crosses the antimeridian"""

    north: float
    south: float
    east: float
    west: float

    def contains(self, lat: float, lng: float) -> bool:
        if not self.south <= lat <= self.north:
            return False
        if self.west <= self.east:
            return self.west <= lng <= self.east
        return lng >= self.west or lng <= self.east

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Bounds":
        try:
            return cls(
                north=float(data["north"]),
                south=float(data["south"]),
                east=float(data["east"]),
                west=float(data["west"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Bounds need numeric north/south/east/west: {e}")


@dataclass(frozen=True)
class Viewport:
    """Current map view"""

    bounds: Bounds
    zoom: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Viewport":
        if "bounds" not in data or "zoom" not in data:
            raise ValueError("Viewport needs bounds and zoom")
        zoom = float(data["zoom"])
        if not math.isfinite(zoom):
            raise ValueError(f"Viewport zoom must be finite, got {data['zoom']!r}")
        return cls(bounds=Bounds.from_dict(data["bounds"]), zoom=int(zoom))


@dataclass(frozen=True)
class Zone:
    """A saved, named polygon"""

    id: str
    name: str
    vertices: Tuple[Vertex, ...]
    color: str = "#FF0000"
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Zone":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            vertices=tuple(Vertex.from_dict(v) for v in data.get("coordinates") or data.get("vertices") or []),
            color=data.get("color") or "#FF0000",
            description=data.get("description"),
        )


@dataclass(frozen=True)
class VisibleSet:
    """
    What should currently render.

    Attributes:
        entities: ordered, capped entities
        total: matches before the cap was applied
        candidates: entities left after the polygon/sampling stage
        cap: the cap in force for this computation
        polygon_active: whether a polygon constrained the result
    """

    entities: Tuple[GeoEntity, ...] = ()
    total: int = 0
    candidates: int = 0
    cap: int = 0
    polygon_active: bool = False

    def __len__(self) -> int:
        return len(self.entities)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(e.id for e in self.entities)

    @property
    def truncated(self) -> bool:
        return self.total > len(self.entities)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": len(self.entities),
            "total": self.total,
            "candidates": self.candidates,
            "cap": self.cap,
            "polygon_active": self.polygon_active,
            "truncated": self.truncated,
            "entities": [e.to_dict() for e in self.entities],
        }
