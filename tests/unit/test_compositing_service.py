"""Unit tests for baking overlays into PDF documents."""

import asyncio

import fitz
import pytest

from docsign.models.geometry import PageGeometry
from docsign.models.overlay import Overlay
from docsign.services.compositing_service import (
    BakeInProgressError,
    BakeTimeoutError,
    CompositeWriter,
    CompositingError,
)

from conftest import make_png


def _geometry(page_index: int) -> PageGeometry:
    return PageGeometry(
        page_index=page_index,
        rendered_width=800,
        rendered_height=1000,
        native_width=612,
        native_height=792,
    )


def _overlay(x=100.0, y=0.0, width=200.0, height=80.0, page_index=1, image_ref="img_sig") -> Overlay:
    return Overlay(image_ref=image_ref, x=x, y=y, width=width, height=height, page_index=page_index)


def _image_boxes(pdf_bytes: bytes) -> dict[int, list[tuple]]:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        return {i + 1: [tuple(info["bbox"]) for info in doc[i].get_image_info()] for i in range(len(doc))}
    finally:
        doc.close()


def _resolver(image_ref: str) -> bytes:
    return make_png(200, 80)


class TestBake:
    """Test cases for CompositeWriter.bake."""

    def test_overlay_lands_at_mapped_rectangle(self, pdf_bytes):
        result = CompositeWriter().bake(pdf_bytes, [_overlay()], [_geometry(1)], _resolver)

        boxes = _image_boxes(result)
        assert boxes[2] == []
        assert len(boxes[1]) == 1
        assert boxes[1][0] == pytest.approx((76.5, 0.0, 229.5, 63.36), abs=0.5)

    def test_overlays_on_several_pages(self, pdf_bytes):
        overlays = [_overlay(), _overlay(x=0, y=920, page_index=2)]

        result = CompositeWriter().bake(
            pdf_bytes, overlays, [_geometry(1), _geometry(2)], _resolver
        )

        boxes = _image_boxes(result)
        assert len(boxes[1]) == 1
        # Bottom edge of the surface maps to the bottom of the page
        assert boxes[2][0] == pytest.approx((0.0, 728.64, 153.0, 792.0), abs=0.5)

    def test_missing_geometry_places_one_to_one(self, pdf_bytes):
        overlay = _overlay(x=50, y=100, width=100, height=40, page_index=2)

        result = CompositeWriter().bake(pdf_bytes, [overlay], [_geometry(1)], _resolver)

        assert _image_boxes(result)[2][0] == pytest.approx((50, 100, 150, 140), abs=0.5)

    def test_base_document_is_not_mutated(self, pdf_bytes):
        original = bytes(pdf_bytes)

        result = CompositeWriter().bake(pdf_bytes, [_overlay()], [_geometry(1)], _resolver)

        assert pdf_bytes == original
        assert result != original

    def test_page_out_of_range(self, pdf_bytes):
        with pytest.raises(CompositingError, match="page 3"):
            CompositeWriter().bake(pdf_bytes, [_overlay(page_index=3)], [], _resolver)

    def test_unreadable_base_document(self):
        with pytest.raises(CompositingError):
            CompositeWriter().bake(b"not a pdf", [_overlay()], [_geometry(1)], _resolver)

    def test_undecodable_image(self, pdf_bytes):
        with pytest.raises(CompositingError, match="decode"):
            CompositeWriter().bake(
                pdf_bytes, [_overlay()], [_geometry(1)], lambda ref: b"\x89PNG broken"
            )

    def test_no_overlays_returns_equivalent_document(self, pdf_bytes):
        result = CompositeWriter().bake(pdf_bytes, [], [], _resolver)

        assert _image_boxes(result) == {1: [], 2: []}


class TestBakeAsync:
    """Test cases for CompositeWriter.bake_async."""

    async def test_async_resolver(self, pdf_bytes):
        calls = []

        async def resolver(image_ref):
            calls.append(image_ref)
            return make_png(200, 80)

        overlays = [_overlay(), _overlay(y=500)]
        result = await CompositeWriter().bake_async(pdf_bytes, overlays, [_geometry(1)], resolver)

        assert len(_image_boxes(result)[1]) == 2
        # Each distinct image is resolved once
        assert calls == ["img_sig"]

    async def test_concurrent_bake_is_rejected(self, pdf_bytes):
        writer = CompositeWriter()
        release = asyncio.Event()

        async def slow_resolver(image_ref):
            await release.wait()
            return make_png(200, 80)

        first = asyncio.create_task(
            writer.bake_async(pdf_bytes, [_overlay()], [_geometry(1)], slow_resolver)
        )
        await asyncio.sleep(0)
        assert writer.busy

        with pytest.raises(BakeInProgressError):
            await writer.bake_async(pdf_bytes, [_overlay()], [_geometry(1)], _resolver)

        release.set()
        assert len(_image_boxes(await first)[1]) == 1
        assert not writer.busy

    async def test_timeout(self, pdf_bytes):
        writer = CompositeWriter()

        async def never(image_ref):
            await asyncio.sleep(5)
            return make_png()

        with pytest.raises(BakeTimeoutError):
            await writer.bake_async(pdf_bytes, [_overlay()], [_geometry(1)], never, timeout=0.05)
        assert not writer.busy

    async def test_resolver_failure(self, pdf_bytes):
        def failing(image_ref):
            raise KeyError(image_ref)

        with pytest.raises(CompositingError):
            await CompositeWriter().bake_async(pdf_bytes, [_overlay()], [_geometry(1)], failing)

    async def test_inputs_are_snapshotted(self, pdf_bytes):
        overlay = _overlay()
        release = asyncio.Event()

        async def resolver(image_ref):
            await release.wait()
            return make_png(200, 80)

        task = asyncio.create_task(
            CompositeWriter().bake_async(pdf_bytes, [overlay], [_geometry(1)], resolver)
        )
        await asyncio.sleep(0)
        overlay.x = 500
        release.set()

        assert _image_boxes(await task)[1][0][0] == pytest.approx(76.5, abs=0.5)
