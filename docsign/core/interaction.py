"""Pointer-driven state machine for dragging and resizing overlays."""

import math
from contextlib import ExitStack, contextmanager
from typing import Callable, Iterator, Optional

from docsign.config import settings
from docsign.core import coordinate_mapper
from docsign.core.geometry_registry import PageGeometryRegistry
from docsign.core.overlay_store import OverlayStore
from docsign.models.interaction import (
    IDLE,
    DraggingState,
    IdleState,
    InteractionState,
    PointerEvent,
    PointerPhase,
    ResizingState,
)
from docsign.models.overlay import Overlay
from docsign.utils.logger import logger

PointerHandler = Callable[[PointerEvent], None]


class PointerEventHub:
    """Delivers pointer-move and pointer-up events to attached listeners.

    Stands in for window-level listeners: events only reach a listener while
    it is attached.
    """

    def __init__(self):
        self._listeners: dict[int, tuple[PointerHandler, PointerHandler]] = {}
        self._next_token = 0

    def attach(self, on_move: PointerHandler, on_up: PointerHandler) -> int:
        self._next_token += 1
        self._listeners[self._next_token] = (on_move, on_up)
        return self._next_token

    def detach(self, token: int) -> None:
        self._listeners.pop(token, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def dispatch(self, event: PointerEvent) -> bool:
        """Deliver a move/up event. Returns False if nobody was listening."""
        if event.phase == PointerPhase.DOWN or not self._listeners:
            return False
        for on_move, on_up in list(self._listeners.values()):
            if event.phase == PointerPhase.MOVE:
                on_move(event)
            else:
                on_up(event)
        return True


class InteractionController:
    """Turns pointer events into overlay moves, resizes and selection changes.

    States are Idle, Dragging and Resizing. Move/up listeners are held only
    while the state is not Idle and are released on every return to Idle and
    on teardown. The controller performs no I/O.
    """

    def __init__(
        self,
        store: OverlayStore,
        registry: PageGeometryRegistry,
        hub: PointerEventHub,
        min_width: Optional[float] = None,
        click_threshold: Optional[float] = None,
        handle_size: Optional[float] = None,
    ):
        self.store = store
        self.registry = registry
        self.hub = hub
        self.min_width = min_width if min_width is not None else settings.overlay_min_width
        self.click_threshold = (
            click_threshold if click_threshold is not None else settings.click_move_threshold
        )
        self.handle_size = handle_size if handle_size is not None else settings.resize_handle_size

        self._state: InteractionState = IDLE
        self._capture: Optional[ExitStack] = None
        self._press: Optional[tuple[float, float]] = None
        self._press_on_canvas = False
        self._drag_engaged = False

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def is_idle(self) -> bool:
        return isinstance(self._state, IdleState)

    # -------- Listener scope --------------------------------------------------
    @contextmanager
    def _pointer_capture(self) -> Iterator[int]:
        token = self.hub.attach(self.pointer_move, self.pointer_up)
        try:
            yield token
        finally:
            self.hub.detach(token)

    def _begin(self, state: InteractionState) -> None:
        self._release()
        capture = ExitStack()
        capture.enter_context(self._pointer_capture())
        self._capture = capture
        self._state = state

    def _release(self) -> None:
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.close()
        self._state = IDLE

    # -------- Targeting -------------------------------------------------------
    def _surface_point(self, overlay: Overlay, event: PointerEvent) -> Optional[tuple[float, float]]:
        bounds = self.registry.surface_bounds(overlay.page_index)
        if bounds is None:
            return None
        return coordinate_mapper.viewport_to_surface(bounds, event.x, event.y)

    def _hits_selected_handle(self, event: PointerEvent) -> Optional[Overlay]:
        overlay = self.store.selected()
        if overlay is None:
            return None
        point = self._surface_point(overlay, event)
        if point and coordinate_mapper.handle_hit_test(overlay, point[0], point[1], self.handle_size):
            return overlay
        return None

    def overlay_at(self, event: PointerEvent) -> Optional[tuple[Overlay, float, float]]:
        """Topmost overlay under the pointer with the surface-relative point."""

        def under_pointer(overlay: Overlay) -> bool:
            point = self._surface_point(overlay, event)
            return point is not None and coordinate_mapper.hit_test(overlay, point[0], point[1])

        overlay = self.store.topmost_at(under_pointer)
        if overlay is None:
            return None
        surface_x, surface_y = self._surface_point(overlay, event)
        return overlay, surface_x, surface_y

    # -------- Events ----------------------------------------------------------
    def pointer_down(self, event: PointerEvent) -> InteractionState:
        if not self.is_idle:
            return self._state

        self._press = (event.x, event.y)
        self._press_on_canvas = False
        self._drag_engaged = False

        overlay = self._hits_selected_handle(event)
        if overlay is not None:
            self._begin(
                ResizingState(
                    overlay_id=overlay.id,
                    anchor_width=overlay.width,
                    anchor_height=overlay.height,
                    anchor_pointer_x=event.x,
                )
            )
            return self._state

        hit = self.overlay_at(event)
        if hit is not None:
            overlay, surface_x, surface_y = hit
            self.store.select(overlay.id)
            self._begin(
                DraggingState(
                    overlay_id=overlay.id,
                    offset_x=surface_x - overlay.x,
                    offset_y=surface_y - overlay.y,
                )
            )
            return self._state

        self._press_on_canvas = True
        return self._state

    def pointer_move(self, event: PointerEvent) -> None:
        state = self._state
        if isinstance(state, DraggingState):
            self._drag(state, event)
        elif isinstance(state, ResizingState):
            self._resize(state, event)

    def pointer_up(self, event: PointerEvent) -> None:
        if self._press_on_canvas and not self._moved_beyond_threshold(event):
            self.store.select(None)
        self._press = None
        self._press_on_canvas = False
        self._drag_engaged = False
        self._release()

    def _moved_beyond_threshold(self, event: PointerEvent) -> bool:
        if self._press is None:
            return False
        return math.hypot(event.x - self._press[0], event.y - self._press[1]) > self.click_threshold

    def _drag(self, state: DraggingState, event: PointerEvent) -> None:
        if self.store.get(state.overlay_id) is None:
            return
        if not self._drag_engaged:
            if not self._moved_beyond_threshold(event):
                return
            self._drag_engaged = True

        for bounds in self.registry.all_surface_bounds():
            if bounds.contains(event.x, event.y):
                surface_x, surface_y = coordinate_mapper.viewport_to_surface(bounds, event.x, event.y)
                self.store.move(
                    state.overlay_id,
                    surface_x - state.offset_x,
                    surface_y - state.offset_y,
                    page_index=bounds.page_index,
                )
                return

    def _resize(self, state: ResizingState, event: PointerEvent) -> None:
        if self.store.get(state.overlay_id) is None:
            return
        aspect_ratio = state.anchor_width / state.anchor_height
        new_width = max(self.min_width, state.anchor_width + (event.x - state.anchor_pointer_x))
        self.store.resize(state.overlay_id, new_width, new_width / aspect_ratio)

    # -------- Commands --------------------------------------------------------
    def delete_selected(self) -> bool:
        selected_id = self.store.selected_id
        if selected_id is None:
            return False
        deleted = self.store.delete(selected_id)
        self.store.select(None)
        if deleted:
            logger.info(f"Deleted selected overlay {selected_id}")
        return deleted

    def teardown(self) -> None:
        """Return to Idle and release listeners unconditionally."""
        self._press = None
        self._press_on_canvas = False
        self._drag_engaged = False
        self._release()
