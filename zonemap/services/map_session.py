"""Interactive map session wiring the polygon editor, filter and debounce"""

from typing import Any, Callable, Dict, Generic, Iterable, Iterator, Optional, Tuple, TypeVar

import structlog

from zonemap.config.settings import settings
from zonemap.models import GeoEntity, SortKey, Vertex, Viewport, VisibleSet
from zonemap.services.polygon_editor import PolygonEditor
from zonemap.services.viewport_filter import FilterQuery, ViewportPropertyFilter
from zonemap.utils.debounce import CoalescingTrigger, Scheduler, timer_scheduler

logger = structlog.get_logger(__name__)

H = TypeVar("H")


class MarkerRegistry(Generic[H]):
    """
    Entity id -> live marker handle, owned by one map view.

    The rendering layer registers handles as it draws markers; the session
    tears the registry down when the view closes.
    """

    def __init__(self):
        self._handles: Dict[str, H] = {}

    def register(self, entity_id: str, handle: H) -> None:
        self._handles[entity_id] = handle

    def unregister(self, entity_id: str) -> Optional[H]:
        return self._handles.pop(entity_id, None)

    def get(self, entity_id: str) -> Optional[H]:
        return self._handles.get(entity_id)

    def retain(self, entity_ids: Iterable[str]) -> None:
        """Drop handles for entities that are no longer rendered"""
        keep = set(entity_ids)
        for entity_id in [i for i in self._handles if i not in keep]:
            del self._handles[entity_id]

    def clear(self) -> None:
        self._handles.clear()

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)


class ViewportSession:
    """
    State of one interactive map view.

    Every input change (viewport move, search, polygon create/edit/delete,
    sort or floor option, new entity snapshot) goes through one coalescing
    trigger, so a burst of events produces a single recomputation after the
    debounce window. The latest result is kept in ``visible`` and passed to
    ``on_update``.
    """

    def __init__(
        self,
        entities: Iterable[GeoEntity],
        viewport: Viewport,
        on_update: Optional[Callable[[VisibleSet], None]] = None,
        filter_: Optional[ViewportPropertyFilter] = None,
        debounce_seconds: float = settings.DEBOUNCE_SECONDS,
        clock: Optional[Callable[[], float]] = None,
        scheduler: Scheduler = timer_scheduler,
    ):
        self._entities: Tuple[GeoEntity, ...] = tuple(entities)
        self.viewport = viewport
        self.search = ""
        self.sort_key = SortKey.ADDRESS
        self.floor: Optional[str] = None
        self.show_full_list = False
        self.on_update = on_update
        self.filter = filter_ or ViewportPropertyFilter()
        self.visible = VisibleSet()
        self.markers: MarkerRegistry[Any] = MarkerRegistry()
        self.closed = False

        self.editor = PolygonEditor(
            on_polygon_finalized=self._on_polygon_changed,
            on_polygon_modified=self._on_polygon_changed,
            on_polygon_removed=self.request_recompute,
        )

        trigger_kwargs: Dict[str, Any] = {"window": debounce_seconds, "scheduler": scheduler}
        if clock is not None:
            trigger_kwargs["clock"] = clock
        self.trigger = CoalescingTrigger(self.recompute, **trigger_kwargs)

    @property
    def entities(self) -> Tuple[GeoEntity, ...]:
        return self._entities

    @property
    def polygon(self) -> Tuple[Vertex, ...]:
        return self.editor.vertices

    def request_recompute(self) -> None:
        if not self.closed:
            self.trigger.trigger()

    def _on_polygon_changed(self, vertices: Tuple[Vertex, ...]) -> None:
        self.request_recompute()

    def move_viewport(self, viewport: Viewport) -> None:
        self.viewport = viewport
        self.request_recompute()

    def set_search(self, term: str) -> None:
        self.search = term or ""
        self.request_recompute()

    def set_sort(self, sort_key: SortKey) -> None:
        self.sort_key = SortKey(sort_key)
        self.request_recompute()

    def set_floor_filter(self, floor: Optional[str]) -> None:
        self.floor = floor or None
        self.request_recompute()

    def set_show_full_list(self, show: bool) -> None:
        self.show_full_list = bool(show)
        self.request_recompute()

    def replace_entities(self, entities: Iterable[GeoEntity]) -> None:
        """Swap in a new entity snapshot wholesale before the next recomputation"""
        self._entities = tuple(entities)
        self.request_recompute()

    def query(self) -> FilterQuery:
        return FilterQuery(
            viewport=self.viewport,
            polygon=self.editor.vertices,
            search=self.search,
            sort_key=self.sort_key,
            floor=self.floor,
            show_full_list=self.show_full_list,
        )

    def recompute(self) -> VisibleSet:
        """Run the filter now over the current snapshot"""
        self.visible = self.filter.compute(self._entities, self.query())
        self.markers.retain(self.visible.ids)

        if self.on_update:
            self.on_update(self.visible)
        return self.visible

    def select(self, entity_id: str) -> Optional[Any]:
        """Marker handle of a rendered entity, used to open its popup"""
        return self.markers.get(entity_id)

    def close(self) -> None:
        """Tear down the view: drop pending work and marker handles"""
        self.trigger.cancel()
        self.markers.clear()
        self.closed = True
        logger.debug("Map session closed")
