"""Ordered collection of placed overlays and the current selection."""

from typing import Callable, Iterable, Iterator, List, Optional

from docsign.models.overlay import Overlay
from docsign.utils.logger import logger


class OverlayStore:
    """Owns every overlay of a session, in creation order.

    Later overlays stack above earlier ones. Operations on unknown ids are
    no-ops that return ``None`` or ``False``.
    """

    def __init__(self):
        self._overlays: List[Overlay] = []
        self._selected_id: Optional[str] = None

    # -------- Queries ---------------------------------------------------------
    def __len__(self) -> int:
        return len(self._overlays)

    def __iter__(self) -> Iterator[Overlay]:
        return iter(list(self._overlays))

    def get(self, overlay_id: str) -> Optional[Overlay]:
        for overlay in self._overlays:
            if overlay.id == overlay_id:
                return overlay
        return None

    def on_page(self, page_index: int) -> List[Overlay]:
        return [o for o in self._overlays if o.page_index == page_index]

    def topmost_at(self, hit: Callable[[Overlay], bool]) -> Optional[Overlay]:
        """Last-created overlay for which ``hit`` is true."""
        for overlay in reversed(self._overlays):
            if hit(overlay):
                return overlay
        return None

    def snapshot(self) -> List[Overlay]:
        """Independent copies in creation order."""
        return [o.model_copy() for o in self._overlays]

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    def selected(self) -> Optional[Overlay]:
        if self._selected_id is None:
            return None
        return self.get(self._selected_id)

    # -------- Mutations -------------------------------------------------------
    def add(
        self,
        image_ref: str,
        x: float,
        y: float,
        width: float,
        height: float,
        page_index: int,
        aspect_ratio: Optional[float] = None,
    ) -> Overlay:
        overlay = Overlay(
            image_ref=image_ref,
            x=x,
            y=y,
            width=width,
            height=height,
            page_index=page_index,
            aspect_ratio=aspect_ratio,
        )
        self._overlays.append(overlay)
        logger.debug(f"Overlay {overlay.id} added on page {page_index}")
        return overlay

    def move(
        self, overlay_id: str, x: float, y: float, page_index: Optional[int] = None
    ) -> Optional[Overlay]:
        overlay = self.get(overlay_id)
        if overlay is None:
            return None
        overlay.x = x
        overlay.y = y
        if page_index is not None and page_index != overlay.page_index:
            logger.debug(f"Overlay {overlay_id} moved from page {overlay.page_index} to {page_index}")
            overlay.page_index = page_index
        return overlay

    def resize(self, overlay_id: str, width: float, height: float) -> Optional[Overlay]:
        overlay = self.get(overlay_id)
        if overlay is None:
            return None
        overlay.width = width
        overlay.height = height
        return overlay

    def delete(self, overlay_id: str) -> bool:
        overlay = self.get(overlay_id)
        if overlay is None:
            return False
        self._overlays.remove(overlay)
        if self._selected_id == overlay_id:
            self._selected_id = None
        logger.debug(f"Overlay {overlay_id} deleted")
        return True

    def discard(self, overlay_ids: Iterable[str]) -> int:
        """Delete several overlays; returns how many were present."""
        return sum(1 for overlay_id in list(overlay_ids) if self.delete(overlay_id))

    def select(self, overlay_id: Optional[str]) -> bool:
        """Select an overlay, or clear the selection with ``None``."""
        if overlay_id is None:
            self._selected_id = None
            return True
        if self.get(overlay_id) is None:
            return False
        self._selected_id = overlay_id
        return True

    def rescale_page(self, page_index: int, factor_x: float, factor_y: float) -> int:
        """Scale every overlay on a page after its rendered size changed.

        Width follows ``factor_x``; height is derived from the locked aspect
        ratio. Returns the number of overlays touched.
        """
        touched = 0
        for overlay in self.on_page(page_index):
            width = overlay.width * factor_x
            overlay.x = overlay.x * factor_x
            overlay.y = overlay.y * factor_y
            overlay.width = width
            overlay.height = width / overlay.aspect_ratio
            touched += 1
        return touched

    def clear(self) -> None:
        self._overlays.clear()
        self._selected_id = None
