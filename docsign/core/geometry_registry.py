"""Per-page geometry reported by the page renderer."""

from typing import Optional

from docsign.config import settings
from docsign.models.geometry import PageGeometry, SurfaceBounds
from docsign.utils.logger import logger


def rescale_factors(previous: PageGeometry, current: PageGeometry) -> tuple[float, float]:
    """Ratio of new to old rendered size, used to keep overlays anchored."""
    return (
        current.rendered_width / previous.rendered_width,
        current.rendered_height / previous.rendered_height,
    )


class PageGeometryRegistry:
    """Rendered and native page sizes for one viewing session.

    Registration is idempotent and last-write-wins. The renderer must call
    :meth:`register` again on every re-render (zoom, window resize, device
    pixel ratio change).
    """

    def __init__(self, page_gap: Optional[float] = None):
        self.page_gap = settings.page_gap if page_gap is None else page_gap
        self._pages: dict[int, PageGeometry] = {}

    def register(
        self,
        page_index: int,
        rendered_width: float,
        rendered_height: float,
        native_width: float,
        native_height: float,
        surface_left: Optional[float] = None,
        surface_top: Optional[float] = None,
    ) -> PageGeometry:
        """Record the geometry of a page, replacing any previous report."""
        geometry = PageGeometry(
            page_index=page_index,
            rendered_width=rendered_width,
            rendered_height=rendered_height,
            native_width=native_width,
            native_height=native_height,
            surface_left=surface_left,
            surface_top=surface_top,
        )
        self._pages[page_index] = geometry
        logger.debug(
            f"Page {page_index} geometry: rendered {rendered_width:.1f}x{rendered_height:.1f}, "
            f"native {native_width:.1f}x{native_height:.1f}"
        )
        return geometry

    def get(self, page_index: int) -> Optional[PageGeometry]:
        return self._pages.get(page_index)

    def all(self) -> list[PageGeometry]:
        """All registered geometries ordered by page index."""
        return [self._pages[index] for index in sorted(self._pages)]

    def remove(self, page_index: int) -> None:
        self._pages.pop(page_index, None)

    def clear(self) -> None:
        self._pages.clear()

    def __len__(self) -> int:
        return len(self._pages)

    def __contains__(self, page_index: object) -> bool:
        return page_index in self._pages

    def surface_bounds(self, page_index: int) -> Optional[SurfaceBounds]:
        """On-screen bounds of a page surface.

        Uses the origin the renderer reported. A page without one is stacked
        ``page_gap`` below the bottom of the previous registered page, wherever
        that page sits.
        """
        if page_index not in self._pages:
            return None
        return next(b for b in self.all_surface_bounds() if b.page_index == page_index)

    def all_surface_bounds(self) -> list[SurfaceBounds]:
        """Bounds of every registered surface ordered by page index."""
        bounds: list[SurfaceBounds] = []
        for geometry in self.all():
            if geometry.has_surface_origin:
                left, top = geometry.surface_left, geometry.surface_top
            else:
                left = 0.0
                top = bounds[-1].bottom + self.page_gap if bounds else 0.0
            bounds.append(
                SurfaceBounds(
                    page_index=geometry.page_index,
                    left=left,
                    top=top,
                    width=geometry.rendered_width,
                    height=geometry.rendered_height,
                )
            )
        return bounds
