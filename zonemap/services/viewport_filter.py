"""Viewport-driven property filtering for map rendering"""

import re
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from zonemap.config.settings import settings
from zonemap.models import GeoEntity, SortKey, Vertex, Viewport, VisibleSet
from zonemap.utils.geometry import is_point_in_polygon
from zonemap.utils.monitoring import monitor

logger = structlog.get_logger(__name__)

# "planta 2A", "floor 3" or a bare level token such as "2", "2A"
_FLOOR_KEYWORD = re.compile(r"^(?:floor|planta)\s*(\S+)$", re.IGNORECASE)
_FLOOR_TOKEN = re.compile(r"^\d+[A-Za-z]?$")


def floor_token(term: str) -> Optional[str]:
    """Extract the floor token a search term refers to, None if it is not floor-like"""
    term = term.strip()
    match = _FLOOR_KEYWORD.match(term)
    if match:
        return match.group(1)
    if _FLOOR_TOKEN.match(term):
        return term
    return None


@dataclass(frozen=True)
class FilterLimits:
    """Zoom thresholds, sampling and caps applied by the filter"""

    min_zoom: int = settings.MIN_ZOOM
    sampling_zoom: int = settings.SAMPLING_ZOOM
    sample_fraction: float = settings.SAMPLE_FRACTION
    sample_max: int = settings.SAMPLE_MAX
    viewport_cap: int = settings.VIEWPORT_CAP
    polygon_cap: int = settings.POLYGON_CAP


@dataclass(frozen=True)
class FilterQuery:
    """
    Trigger inputs of one recomputation

    Attributes:
        viewport: current map bounds and zoom
        polygon: active polygon, empty for none
        search: free-text search term
        sort_key: ordering of the result
        floor: exact floor filter, None to disable
        show_full_list: skip the viewport bounds stage (side panel listing
            every polygon match)
    """

    viewport: Viewport
    polygon: Tuple[Vertex, ...] = ()
    search: str = ""
    sort_key: SortKey = SortKey.ADDRESS
    floor: Optional[str] = None
    show_full_list: bool = False

    @property
    def polygon_active(self) -> bool:
        return len(self.polygon) >= 3


class ViewportPropertyFilter:
    """
    Computes the set of entities to render for a map view.

    Stages run in priority order, each over the previous stage's output:
    coordinate check, zoom gate, polygon containment, medium-zoom sampling,
    floor filter, search, sort, viewport bounds and cap. The computation is a
    pure function of its inputs.
    """

    def __init__(
        self,
        limits: Optional[FilterLimits] = None,
        search_fields: Sequence[str] = settings.SEARCH_FIELDS,
    ):
        self.limits = limits or FilterLimits()
        self.search_fields = tuple(search_fields)

    def cap_for(self, polygon_active: bool) -> int:
        return self.limits.polygon_cap if polygon_active else self.limits.viewport_cap

    def compute(self, entities: Iterable[GeoEntity], query: FilterQuery) -> VisibleSet:
        """Compute the visible set for one snapshot of entities"""
        start_time = time.time()
        result = self._compute(entities, query)

        elapsed = time.time() - start_time
        monitor.record("viewport_filter", elapsed)
        logger.debug(
            "Visible set computed",
            visible=len(result),
            total=result.total,
            candidates=result.candidates,
            zoom=query.viewport.zoom,
            polygon_active=query.polygon_active,
            elapsed=elapsed,
        )
        return result

    def _compute(self, entities: Iterable[GeoEntity], query: FilterQuery) -> VisibleSet:
        polygon_active = query.polygon_active
        cap = self.cap_for(polygon_active)

        # Stage 0: entities without a usable position never render
        candidates = [e for e in entities if e.has_valid_position]

        # Stage 1: zoom gate, unless a polygon narrows the candidates already
        if not polygon_active and query.viewport.zoom < self.limits.min_zoom:
            return VisibleSet(cap=cap)

        # Stage 2: polygon containment
        if polygon_active:
            candidates = [
                e for e in candidates
                if is_point_in_polygon((e.lat, e.lng), query.polygon)
            ]
            if not candidates:
                return VisibleSet(cap=cap, polygon_active=True)

        # Stage 3: medium-zoom sampling
        if not polygon_active and query.viewport.zoom < self.limits.sampling_zoom:
            candidates = self._sample(candidates)

        candidate_count = len(candidates)

        # Stage 4: secondary attribute filter
        if query.floor:
            candidates = [e for e in candidates if e.floor == query.floor]

        # Stage 5: search term. Floor-like terms reorder instead of dropping
        token = None
        term = query.search.strip()
        if term:
            token = floor_token(term)
            if token is None:
                needle = term.lower()
                candidates = [e for e in candidates if self._matches(e, needle)]

        # Stage 6: sort
        candidates = self._sort(candidates, query.sort_key, token)

        # Stage 7: viewport bounds
        if not query.show_full_list:
            bounds = query.viewport.bounds
            candidates = [e for e in candidates if bounds.contains(e.lat, e.lng)]

        # Stage 8: cap
        return VisibleSet(
            entities=tuple(candidates[:cap]),
            total=len(candidates),
            candidates=candidate_count,
            cap=cap,
            polygon_active=polygon_active,
        )

    def _sample(self, entities: List[GeoEntity]) -> List[GeoEntity]:
        if not entities:
            return entities
        size = max(1, int(len(entities) * self.limits.sample_fraction))
        return entities[:min(size, self.limits.sample_max)]

    def _matches(self, entity: GeoEntity, needle: str) -> bool:
        return any(needle in entity.field_text(name).lower() for name in self.search_fields)

    @staticmethod
    def _sort(
        entities: List[GeoEntity],
        sort_key: SortKey,
        token: Optional[str],
    ) -> List[GeoEntity]:
        if sort_key == SortKey.SIZE:
            # Descending size, entities without a size go last
            ordered = sorted(
                entities,
                key=lambda e: (e.size is None, -(e.size or 0.0)),
            )
        elif sort_key == SortKey.FLOOR:
            ordered = sorted(entities, key=lambda e: e.floor)
        else:
            ordered = sorted(entities, key=lambda e: e.address)

        if token:
            # Stable partition: floor matches first, relative order kept
            needle = token.lower()
            ordered = sorted(ordered, key=lambda e: needle not in e.floor.lower())

        return ordered


def compute_visible_set(
    entities: Iterable[GeoEntity],
    viewport: Viewport,
    polygon: Sequence[Vertex] = (),
    search: str = "",
    sort_key: SortKey = SortKey.ADDRESS,
    floor: Optional[str] = None,
    show_full_list: bool = False,
    limits: Optional[FilterLimits] = None,
) -> VisibleSet:
    """Convenience wrapper around ViewportPropertyFilter.compute"""
    query = FilterQuery(
        viewport=viewport,
        polygon=tuple(polygon),
        search=search,
        sort_key=SortKey(sort_key),
        floor=floor,
        show_full_list=show_full_list,
    )
    return ViewportPropertyFilter(limits=limits).compute(entities, query)
