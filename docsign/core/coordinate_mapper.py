"""Transforms between render space and document-native space.

Render space has its origin at the top-left of a page surface and grows
downwards. Native space (PDF points) has its origin at the bottom-left of the
page and grows upwards, so every vertical coordinate is flipped on the way
across.
"""

from docsign.models.geometry import NativeRect, PageGeometry, SurfaceBounds
from docsign.models.overlay import Overlay


def scale_factors(geometry: PageGeometry) -> tuple[float, float]:
    """Return (sx, sy), native units per rendered pixel."""
    return geometry.scale_x, geometry.scale_y


def to_native(
    geometry: PageGeometry,
    render_x: float,
    render_y: float,
    render_w: float,
    render_h: float,
) -> NativeRect:
    """Map a render-space rectangle to a bottom-origin native rectangle.

    The native y is the overlay's *bottom* edge:
    ``native_height - (render_y + render_h) * sy``.
    """
    sx, sy = scale_factors(geometry)
    return NativeRect(
        x=render_x * sx,
        y=geometry.native_height - (render_y + render_h) * sy,
        width=render_w * sx,
        height=render_h * sy,
    )


def to_render(geometry: PageGeometry, native: NativeRect) -> tuple[float, float, float, float]:
    """Inverse of :func:`to_native`; returns (x, y, width, height) in render space."""
    sx, sy = scale_factors(geometry)
    render_w = native.width / sx
    render_h = native.height / sy
    render_x = native.x / sx
    render_y = (geometry.native_height - native.y) / sy - render_h
    return render_x, render_y, render_w, render_h


def fallback_geometry(page_index: int, native_width: float, native_height: float) -> PageGeometry:
    """Geometry that treats rendered size as native size (1:1, no rescaling)."""
    return PageGeometry(
        page_index=page_index,
        rendered_width=native_width,
        rendered_height=native_height,
        native_width=native_width,
        native_height=native_height,
    )


def hit_test(overlay: Overlay, pointer_x: float, pointer_y: float) -> bool:
    """Bounding-box containment; pointer is relative to the overlay's page surface."""
    return overlay.contains(pointer_x, pointer_y)


def handle_hit_test(
    overlay: Overlay, pointer_x: float, pointer_y: float, handle_size: float
) -> bool:
    """Hit test for the square resize handle centred on the bottom-right corner."""
    half = handle_size / 2
    corner_x = overlay.x + overlay.width
    corner_y = overlay.y + overlay.height
    return abs(pointer_x - corner_x) <= half and abs(pointer_y - corner_y) <= half


def viewport_to_surface(bounds: SurfaceBounds, x: float, y: float) -> tuple[float, float]:
    """Translate viewport coordinates into coordinates relative to a page surface."""
    return x - bounds.left, y - bounds.top


def native_to_page_rect(native: NativeRect, page_height: float) -> tuple[float, float, float, float]:
    """Convert a bottom-origin rectangle to top-left-origin (x0, y0, x1, y1).

    PyMuPDF addresses page content from the top-left corner.
    """
    y0 = page_height - (native.y + native.height)
    return native.x, y0, native.x + native.width, y0 + native.height
