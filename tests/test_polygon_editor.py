"""
ZoneMap: Polygon Editor Tests
Tests: drawing lifecycle, edit and delete events, invalid shapes, state errors.
Run: pytest tests/test_polygon_editor.py -v
"""

import pytest

from zonemap.models import Vertex
from zonemap.services.polygon_editor import EditorState, PolygonEditor
from zonemap.utils.exceptions import EditorStateError, InvalidPolygonError


class Recorder:
    """Collects editor callbacks in call order"""

    def __init__(self):
        self.events = []

    def finalized(self, vertices):
        self.events.append(("finalized", vertices))

    def modified(self, vertices):
        self.events.append(("modified", vertices))

    def removed(self):
        self.events.append(("removed", None))


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def editor(recorder):
    return PolygonEditor(
        on_polygon_finalized=recorder.finalized,
        on_polygon_modified=recorder.modified,
        on_polygon_removed=recorder.removed,
    )


def draw(editor, points):
    editor.start_drawing()
    for lat, lng in points:
        editor.add_vertex(lat, lng)
    return editor.finish_drawing()


TRIANGLE = [(0, 0), (0, 4), (3, 0)]
SQUARE = [(0, 0), (0, 10), (10, 10), (10, 0)]


# ═══════════════════════════════════════════════════════════════
# 1. DRAWING
# ═══════════════════════════════════════════════════════════════

class TestDrawing:

    def test_starts_idle_without_polygon(self, editor):
        assert editor.state == EditorState.IDLE
        assert editor.vertices == ()

    def test_finish_emits_finalized(self, editor, recorder):
        vertices = draw(editor, TRIANGLE)
        assert editor.state == EditorState.EDITING
        assert vertices == (Vertex(0, 0), Vertex(0, 4), Vertex(3, 0))
        assert recorder.events == [("finalized", vertices)]

    def test_vertices_are_read_only_snapshot(self, editor):
        draw(editor, TRIANGLE)
        assert isinstance(editor.vertices, tuple)

    def test_draft_tracks_placed_vertices(self, editor):
        editor.start_drawing()
        editor.add_vertex(1, 2)
        assert editor.draft == (Vertex(1, 2),)
        assert editor.vertices == ()

    def test_cancel_returns_to_idle(self, editor, recorder):
        editor.start_drawing()
        editor.add_vertex(1, 1)
        editor.cancel_drawing()
        assert editor.state == EditorState.IDLE
        assert editor.draft == ()
        assert recorder.events == []

    def test_new_draw_replaces_polygon(self, editor, recorder):
        draw(editor, TRIANGLE)
        second = draw(editor, SQUARE)
        assert editor.vertices == second
        assert len(editor.vertices) == 4
        assert [name for name, _ in recorder.events] == ["finalized", "finalized"]

    def test_cancelled_redraw_keeps_polygon(self, editor):
        first = draw(editor, TRIANGLE)
        editor.start_drawing()
        editor.add_vertex(50, 50)
        editor.cancel_drawing()
        assert editor.state == EditorState.EDITING
        assert editor.vertices == first


# ═══════════════════════════════════════════════════════════════
# 2. INVALID SHAPES
# ═══════════════════════════════════════════════════════════════

class TestInvalidShapes:

    def test_too_few_vertices(self, editor, recorder):
        editor.start_drawing()
        editor.add_vertex(0, 0)
        editor.add_vertex(1, 1)
        with pytest.raises(InvalidPolygonError):
            editor.finish_drawing()
        assert editor.state == EditorState.DRAWING
        assert recorder.events == []

    def test_can_continue_after_rejection(self, editor):
        editor.start_drawing()
        editor.add_vertex(0, 0)
        editor.add_vertex(0, 4)
        with pytest.raises(InvalidPolygonError):
            editor.finish_drawing()
        editor.add_vertex(3, 0)
        assert len(editor.finish_drawing()) == 3

    def test_bow_tie_leaves_prior_polygon(self, editor, recorder):
        first = draw(editor, SQUARE)
        editor.start_drawing()
        for lat, lng in [(0, 0), (10, 10), (0, 10), (10, 0)]:
            editor.add_vertex(lat, lng)
        with pytest.raises(InvalidPolygonError):
            editor.finish_drawing()
        assert editor.vertices == first
        assert len(recorder.events) == 1

    def test_invalid_edit_rejected(self, editor, recorder):
        first = draw(editor, SQUARE)
        with pytest.raises(InvalidPolygonError):
            editor.move_vertex(1, 10, 0)  # folds back onto vertex 3
        assert editor.vertices == first
        assert [name for name, _ in recorder.events] == ["finalized"]


# ═══════════════════════════════════════════════════════════════
# 3. EDITING AND DELETION
# ═══════════════════════════════════════════════════════════════

class TestEditing:

    def test_move_vertex_emits_modified(self, editor, recorder):
        draw(editor, SQUARE)
        updated = editor.move_vertex(2, 12, 12)
        assert updated[2] == Vertex(12, 12)
        assert recorder.events[-1] == ("modified", updated)
        assert editor.state == EditorState.EDITING

    def test_move_vertex_out_of_range(self, editor):
        draw(editor, TRIANGLE)
        with pytest.raises(IndexError):
            editor.move_vertex(3, 1, 1)

    def test_replace_vertices(self, editor, recorder):
        draw(editor, TRIANGLE)
        updated = editor.replace_vertices([{"lat": 0, "lng": 0}, {"lat": 0, "lng": 8}, {"lat": 6, "lng": 0}])
        assert editor.vertices == updated
        assert recorder.events[-1][0] == "modified"

    def test_delete_emits_removed(self, editor, recorder):
        draw(editor, TRIANGLE)
        editor.delete()
        assert editor.state == EditorState.IDLE
        assert editor.vertices == ()
        assert recorder.events[-1] == ("removed", None)

    def test_load_is_silent(self, editor, recorder):
        editor.load(SQUARE)
        assert editor.state == EditorState.EDITING
        assert len(editor.vertices) == 4
        assert recorder.events == []

    def test_editor_without_callbacks(self):
        editor = PolygonEditor()
        draw(editor, TRIANGLE)
        editor.move_vertex(0, -1, -1)
        editor.delete()
        assert editor.state == EditorState.IDLE


# ═══════════════════════════════════════════════════════════════
# 4. STATE ERRORS
# ═══════════════════════════════════════════════════════════════

class TestStateErrors:

    def test_add_vertex_when_idle(self, editor):
        with pytest.raises(EditorStateError):
            editor.add_vertex(1, 1)

    def test_delete_without_polygon(self, editor):
        with pytest.raises(EditorStateError):
            editor.delete()

    def test_move_while_drawing(self, editor):
        editor.start_drawing()
        with pytest.raises(EditorStateError):
            editor.move_vertex(0, 1, 1)

    def test_start_twice(self, editor):
        editor.start_drawing()
        with pytest.raises(EditorStateError):
            editor.start_drawing()

    def test_finish_when_idle(self, editor):
        with pytest.raises(EditorStateError):
            editor.finish_drawing()
