"""Unit tests for render/native coordinate mapping."""

import pytest

from docsign.core import coordinate_mapper
from docsign.models.geometry import NativeRect, PageGeometry, SurfaceBounds
from docsign.models.overlay import Overlay


def _geometry(rw=800.0, rh=1000.0, nw=612.0, nh=792.0, page_index=1) -> PageGeometry:
    return PageGeometry(
        page_index=page_index,
        rendered_width=rw,
        rendered_height=rh,
        native_width=nw,
        native_height=nh,
    )


def _overlay(x=10.0, y=20.0, width=100.0, height=40.0) -> Overlay:
    return Overlay(image_ref="img_test", x=x, y=y, width=width, height=height, page_index=1)


class TestToNative:
    """Test cases for to_native."""

    def test_identity_when_rendered_matches_native(self):
        native = coordinate_mapper.to_native(_geometry(612, 792, 612, 792), 50, 100, 200, 80)

        assert native.x == pytest.approx(50)
        assert native.width == pytest.approx(200)
        assert native.height == pytest.approx(80)
        assert native.y == pytest.approx(792 - 180)

    def test_scaled_overlay_at_top_edge(self):
        """An overlay touching the top of the surface lands at the top of the page."""
        native = coordinate_mapper.to_native(_geometry(), 100, 0, 200, 80)

        assert native.x == pytest.approx(76.5)
        assert native.width == pytest.approx(153.0)
        assert native.height == pytest.approx(63.36)
        assert native.y == pytest.approx(728.64)
        assert native.y + native.height == pytest.approx(792.0)

    def test_overlay_at_bottom_edge_maps_to_zero(self):
        native = coordinate_mapper.to_native(_geometry(), 0, 920, 200, 80)

        assert native.y == pytest.approx(0.0)

    def test_round_trip_through_to_render(self):
        geometry = _geometry(1024.0, 1325.0)
        native = coordinate_mapper.to_native(geometry, 33.0, 417.5, 180.0, 72.0)

        x, y, w, h = coordinate_mapper.to_render(geometry, native)

        assert (x, y, w, h) == pytest.approx((33.0, 417.5, 180.0, 72.0))

    def test_scale_factors(self):
        assert coordinate_mapper.scale_factors(_geometry()) == pytest.approx((0.765, 0.792))


class TestPageRect:
    """Test cases for the bottom-origin to top-origin conversion."""

    def test_native_to_page_rect_flips_vertical_axis(self):
        rect = coordinate_mapper.native_to_page_rect(
            NativeRect(x=76.5, y=728.64, width=153.0, height=63.36), 792.0
        )

        assert rect == pytest.approx((76.5, 0.0, 229.5, 63.36))

    def test_fallback_geometry_is_one_to_one(self):
        geometry = coordinate_mapper.fallback_geometry(3, 595.0, 842.0)

        assert geometry.page_index == 3
        assert geometry.scale_x == pytest.approx(1.0)
        assert geometry.scale_y == pytest.approx(1.0)


class TestHitTesting:
    """Test cases for hit testing helpers."""

    def test_hit_test_includes_edges(self):
        overlay = _overlay()

        assert coordinate_mapper.hit_test(overlay, 10, 20)
        assert coordinate_mapper.hit_test(overlay, 110, 60)
        assert not coordinate_mapper.hit_test(overlay, 110.5, 60)

    def test_handle_hit_test_centred_on_corner(self):
        overlay = _overlay()

        assert coordinate_mapper.handle_hit_test(overlay, 110, 60, 24)
        assert coordinate_mapper.handle_hit_test(overlay, 121, 71, 24)
        assert not coordinate_mapper.handle_hit_test(overlay, 123, 60, 24)
        assert not coordinate_mapper.handle_hit_test(overlay, 50, 40, 24)

    def test_viewport_to_surface(self):
        bounds = SurfaceBounds(page_index=2, left=40, top=1016, width=800, height=1000)

        assert coordinate_mapper.viewport_to_surface(bounds, 140, 1116) == (100, 100)
