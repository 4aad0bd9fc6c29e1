"""Unit tests for the pointer interaction controller."""

import pytest

from docsign.core.geometry_registry import PageGeometryRegistry
from docsign.core.interaction import InteractionController, PointerEventHub
from docsign.core.overlay_store import OverlayStore
from docsign.models.interaction import DraggingState, IdleState, PointerEvent, ResizingState


@pytest.fixture
def workspace():
    """Two 800x1000 page surfaces stacked with a 16px gap, one overlay on page 1."""
    registry = PageGeometryRegistry(page_gap=16)
    registry.register(1, 800, 1000, 612, 792)
    registry.register(2, 800, 1000, 612, 792)
    store = OverlayStore()
    overlay = store.add("img_a", 100, 100, 200, 80, 1)
    hub = PointerEventHub()
    controller = InteractionController(
        store, registry, hub, min_width=50, click_threshold=4, handle_size=24
    )
    return controller, store, hub, overlay


class TestDragging:
    """Test cases for dragging overlays."""

    def test_press_on_overlay_selects_and_starts_drag(self, workspace):
        controller, store, hub, overlay = workspace

        state = controller.pointer_down(PointerEvent.down(150, 120))

        assert isinstance(state, DraggingState)
        assert (state.offset_x, state.offset_y) == (50, 20)
        assert store.selected_id == overlay.id
        assert hub.listener_count == 1

    def test_drag_keeps_grab_offset(self, workspace):
        controller, store, hub, overlay = workspace
        controller.pointer_down(PointerEvent.down(150, 120))

        hub.dispatch(PointerEvent.move(300, 400))

        assert (overlay.x, overlay.y, overlay.page_index) == (250, 380, 1)

    def test_drag_to_another_page(self, workspace):
        controller, store, hub, overlay = workspace
        controller.pointer_down(PointerEvent.down(150, 120))

        hub.dispatch(PointerEvent.move(150, 1116))

        assert overlay.page_index == 2
        assert (overlay.x, overlay.y) == (100, 80)

    def test_move_outside_every_surface_is_ignored(self, workspace):
        controller, store, hub, overlay = workspace
        controller.pointer_down(PointerEvent.down(150, 120))

        hub.dispatch(PointerEvent.move(900, 50))
        hub.dispatch(PointerEvent.move(150, 1008))

        assert (overlay.x, overlay.y, overlay.page_index) == (100, 100, 1)

    def test_small_jitter_does_not_move(self, workspace):
        controller, store, hub, overlay = workspace
        controller.pointer_down(PointerEvent.down(150, 120))

        hub.dispatch(PointerEvent.move(152, 121))

        assert (overlay.x, overlay.y) == (100, 100)

    def test_release_returns_to_idle_and_detaches(self, workspace):
        controller, store, hub, overlay = workspace
        controller.pointer_down(PointerEvent.down(150, 120))

        hub.dispatch(PointerEvent.up(150, 120))

        assert controller.is_idle
        assert hub.listener_count == 0
        assert hub.dispatch(PointerEvent.move(400, 400)) is False
        assert store.selected_id == overlay.id

    def test_overlay_removed_mid_drag(self, workspace):
        controller, store, hub, overlay = workspace
        controller.pointer_down(PointerEvent.down(150, 120))
        store.delete(overlay.id)

        hub.dispatch(PointerEvent.move(300, 400))
        hub.dispatch(PointerEvent.up(300, 400))

        assert len(store) == 0
        assert controller.is_idle

    def test_topmost_overlay_wins(self, workspace):
        controller, store, hub, overlay = workspace
        upper = store.add("img_b", 150, 110, 100, 40, 1)

        controller.pointer_down(PointerEvent.down(160, 120))

        assert store.selected_id == upper.id

    def test_second_press_while_dragging_is_ignored(self, workspace):
        controller, store, hub, overlay = workspace
        first = controller.pointer_down(PointerEvent.down(150, 120))

        second = controller.pointer_down(PointerEvent.down(700, 900))

        assert second is first
        assert hub.listener_count == 1


class TestResizing:
    """Test cases for handle resizing."""

    def _select(self, controller, hub):
        controller.pointer_down(PointerEvent.down(150, 120))
        hub.dispatch(PointerEvent.up(150, 120))

    def test_handle_press_starts_resize(self, workspace):
        controller, store, hub, overlay = workspace
        self._select(controller, hub)

        state = controller.pointer_down(PointerEvent.down(300, 180))

        assert isinstance(state, ResizingState)
        assert (state.anchor_width, state.anchor_height) == (200, 80)

    def test_resize_keeps_aspect_ratio(self, workspace):
        controller, store, hub, overlay = workspace
        self._select(controller, hub)
        controller.pointer_down(PointerEvent.down(300, 180))

        hub.dispatch(PointerEvent.move(400, 500))

        assert overlay.width == pytest.approx(300)
        assert overlay.height == pytest.approx(120)
        assert (overlay.x, overlay.y) == (100, 100)

    def test_resize_floor(self, workspace):
        controller, store, hub, overlay = workspace
        self._select(controller, hub)
        controller.pointer_down(PointerEvent.down(300, 180))

        hub.dispatch(PointerEvent.move(0, 180))

        assert overlay.width == pytest.approx(50)
        assert overlay.height == pytest.approx(20)

    def test_handle_of_unselected_overlay_drags_instead(self, workspace):
        controller, store, hub, overlay = workspace

        state = controller.pointer_down(PointerEvent.down(298, 178))

        assert isinstance(state, DraggingState)


class TestSelection:
    """Test cases for click selection and deletion."""

    def test_click_on_empty_canvas_clears_selection(self, workspace):
        controller, store, hub, overlay = workspace
        store.select(overlay.id)

        state = controller.pointer_down(PointerEvent.down(700, 900))
        assert isinstance(state, IdleState)
        assert hub.listener_count == 0
        controller.pointer_up(PointerEvent.up(701, 900))

        assert store.selected_id is None

    def test_canvas_press_that_moves_keeps_selection(self, workspace):
        controller, store, hub, overlay = workspace
        store.select(overlay.id)

        controller.pointer_down(PointerEvent.down(700, 900))
        controller.pointer_up(PointerEvent.up(600, 700))

        assert store.selected_id == overlay.id

    def test_delete_selected(self, workspace):
        controller, store, hub, overlay = workspace
        store.select(overlay.id)

        assert controller.delete_selected() is True
        assert len(store) == 0
        assert controller.delete_selected() is False

    def test_teardown_releases_listeners(self, workspace):
        controller, store, hub, overlay = workspace
        controller.pointer_down(PointerEvent.down(150, 120))

        controller.teardown()

        assert controller.is_idle
        assert hub.listener_count == 0


class TestPointerEvent:
    """Test cases for raw event normalisation."""

    def test_from_mouse_payload(self):
        event = PointerEvent.from_raw({"type": "mousedown", "clientX": 10, "clientY": 20})

        assert (event.phase.value, event.x, event.y, event.pointer_type) == ("down", 10, 20, "mouse")

    def test_touch_end_uses_changed_touches(self):
        event = PointerEvent.from_raw(
            {"type": "touchend", "touches": [], "changedTouches": [{"clientX": 5, "clientY": 6}]}
        )

        assert (event.phase.value, event.x, event.y, event.pointer_type) == ("up", 5, 6, "touch")

    def test_pen_pointer_payload(self):
        event = PointerEvent.from_raw(
            {"type": "pointermove", "pointerType": "pen", "clientX": 1, "clientY": 2}
        )

        assert event.pointer_type == "pen"

    @pytest.mark.parametrize(
        "raw",
        [
            {"type": "keydown"},
            {"type": "mousemove"},
            {"type": "touchstart", "touches": []},
        ],
    )
    def test_invalid_payloads(self, raw):
        with pytest.raises(ValueError):
            PointerEvent.from_raw(raw)
