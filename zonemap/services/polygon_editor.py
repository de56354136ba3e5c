"""Single-polygon editor driving zone definition on the map"""

from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

import structlog

from zonemap.models import Vertex
from zonemap.utils.exceptions import EditorStateError, InvalidPolygonError
from zonemap.utils.geometry import coerce_vertices, validate_polygon

logger = structlog.get_logger(__name__)

VerticesCallback = Callable[[Tuple[Vertex, ...]], None]
RemovedCallback = Callable[[], None]


class EditorState(str, Enum):
    IDLE = "idle"
    DRAWING = "drawing"
    EDITING = "editing"


class PolygonEditor:
    """
    Tracks one editable polygon and broadcasts its vertices.

    Transitions:
        IDLE/EDITING -> DRAWING   start_drawing()
        DRAWING -> EDITING        finish_drawing(), emits on_polygon_finalized
        EDITING -> EDITING        move_vertex() / replace_vertices(), emits on_polygon_modified
        EDITING -> IDLE           delete(), emits on_polygon_removed
        DRAWING -> previous       cancel_drawing()

    At most one polygon exists. A finished draw replaces the current polygon;
    an invalid shape raises InvalidPolygonError, emits nothing and leaves the
    current polygon as it was.
    """

    def __init__(
        self,
        on_polygon_finalized: Optional[VerticesCallback] = None,
        on_polygon_modified: Optional[VerticesCallback] = None,
        on_polygon_removed: Optional[RemovedCallback] = None,
    ):
        self.on_polygon_finalized = on_polygon_finalized
        self.on_polygon_modified = on_polygon_modified
        self.on_polygon_removed = on_polygon_removed

        self.state = EditorState.IDLE
        self._vertices: Tuple[Vertex, ...] = ()
        self._draft: List[Vertex] = []
        self._state_before_draw = EditorState.IDLE

    @property
    def vertices(self) -> Tuple[Vertex, ...]:
        """Read-only snapshot of the committed polygon, empty when there is none"""
        return self._vertices

    @property
    def draft(self) -> Tuple[Vertex, ...]:
        return tuple(self._draft)

    def _require(self, *states: EditorState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise EditorStateError(f"Operation requires state {allowed}, editor is {self.state.value}")

    def start_drawing(self) -> None:
        """Invoke the draw tool"""
        self._require(EditorState.IDLE, EditorState.EDITING)
        self._state_before_draw = self.state
        self._draft = []
        self.state = EditorState.DRAWING
        logger.debug("Polygon drawing started", replacing=bool(self._vertices))

    def add_vertex(self, lat: float, lng: float) -> None:
        self._require(EditorState.DRAWING)
        self._draft.append(Vertex(lat=float(lat), lng=float(lng)))

    def cancel_drawing(self) -> None:
        self._require(EditorState.DRAWING)
        self._draft = []
        self.state = self._state_before_draw

    def finish_drawing(self) -> Tuple[Vertex, ...]:
        """
        Close the polygon being drawn

        Raises:
            InvalidPolygonError: the shape is degenerate or self-intersecting;
                the editor stays in DRAWING so the user can keep placing vertices
        """
        self._require(EditorState.DRAWING)
        try:
            vertices = validate_polygon(self._draft)
        except InvalidPolygonError as e:
            logger.warning("Polygon rejected", error=str(e), vertex_count=len(self._draft))
            raise

        self._vertices = vertices
        self._draft = []
        self.state = EditorState.EDITING
        logger.info("Polygon created", vertex_count=len(vertices))

        if self.on_polygon_finalized:
            self.on_polygon_finalized(vertices)
        return vertices

    def move_vertex(self, index: int, lat: float, lng: float) -> Tuple[Vertex, ...]:
        """Drag one vertex of the committed polygon"""
        self._require(EditorState.EDITING)
        if not -len(self._vertices) <= index < len(self._vertices):
            raise IndexError(f"Vertex index {index} out of range")

        updated = list(self._vertices)
        updated[index] = Vertex(lat=float(lat), lng=float(lng))
        return self.replace_vertices(updated)

    def replace_vertices(self, vertices: Iterable) -> Tuple[Vertex, ...]:
        """Finish an edit gesture with a whole new vertex list"""
        self._require(EditorState.EDITING)
        try:
            validated = validate_polygon(coerce_vertices(vertices))
        except InvalidPolygonError as e:
            logger.warning("Polygon edit rejected", error=str(e))
            raise

        self._vertices = validated
        logger.info("Polygon edited", vertex_count=len(validated))

        if self.on_polygon_modified:
            self.on_polygon_modified(validated)
        return validated

    def delete(self) -> None:
        """Remove the polygon; downstream filters see an empty polygon"""
        self._require(EditorState.EDITING)
        self._vertices = ()
        self.state = EditorState.IDLE
        logger.info("Polygon deleted")

        if self.on_polygon_removed:
            self.on_polygon_removed()

    def load(self, vertices: Iterable) -> Tuple[Vertex, ...]:
        """Open an existing zone polygon for editing without emitting events"""
        self._require(EditorState.IDLE, EditorState.EDITING)
        self._vertices = validate_polygon(coerce_vertices(vertices))
        self.state = EditorState.EDITING
        return self._vertices
