"""Bakes placed overlays into the document's native coordinate space."""

import asyncio
import inspect
from typing import Awaitable, Callable, Iterable, Optional, Sequence, Union

import fitz

from docsign.core import coordinate_mapper
from docsign.models.geometry import PageGeometry
from docsign.models.overlay import Overlay
from docsign.services.image_service import ImageDecodeError, to_png
from docsign.utils.logger import logger

ImageResolver = Callable[[str], Union[bytes, Awaitable[bytes]]]

# Native sizes reported by the renderer may differ from the page box by rounding
_NATIVE_SIZE_TOLERANCE = 0.5


class CompositingError(Exception):
    """Raised when overlays cannot be baked into the document."""

    pass


class BakeInProgressError(Exception):
    """Raised when a bake is requested while another one is running."""

    pass


class BakeTimeoutError(Exception):
    """Raised when a bake exceeds the caller's timeout."""

    pass


class CompositeWriter:
    """Embeds overlay images into a PDF at their native-space rectangles.

    :meth:`bake` is a pure function of its arguments. :meth:`bake_async`
    adds image resolution, a timeout, and rejects overlapping bakes on the
    same writer (one writer per document session).
    """

    def __init__(self):
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def bake(
        self,
        base_document: bytes,
        overlays: Sequence[Overlay],
        page_geometries: Iterable[PageGeometry],
        image_resolver: Callable[[str], bytes],
    ) -> bytes:
        """
        Draw every overlay onto its page and return new document bytes.

        Overlays are applied in creation order, so later ones sit on top.
        Pages without a registered geometry are mapped 1:1.

        Raises:
            CompositingError: If the document cannot be opened, an overlay
                targets a page the document does not have, or an image
                cannot be decoded. No output is produced in that case.
        """
        geometries = {g.page_index: g for g in page_geometries}

        try:
            pdf_doc = fitz.open(stream=bytes(base_document), filetype="pdf")
        except Exception as e:
            logger.error(f"Failed to open base document: {e}")
            raise CompositingError(f"Failed to open base document: {e}") from e

        try:
            page_count = len(pdf_doc)
            for overlay in overlays:
                if not 1 <= overlay.page_index <= page_count:
                    raise CompositingError(
                        f"Overlay {overlay.id} targets page {overlay.page_index}, "
                        f"but the document has {page_count} page(s)"
                    )

                page = pdf_doc[overlay.page_index - 1]
                page_rect = page.rect

                geometry = geometries.get(overlay.page_index)
                if geometry is None:
                    logger.warning(
                        f"No rendered geometry for page {overlay.page_index}, placing overlay "
                        f"{overlay.id} without rescaling"
                    )
                    geometry = coordinate_mapper.fallback_geometry(
                        overlay.page_index, page_rect.width, page_rect.height
                    )
                elif (
                    abs(geometry.native_width - page_rect.width) > _NATIVE_SIZE_TOLERANCE
                    or abs(geometry.native_height - page_rect.height) > _NATIVE_SIZE_TOLERANCE
                ):
                    logger.warning(
                        f"Page {overlay.page_index} reported native size "
                        f"{geometry.native_width}x{geometry.native_height}, document page is "
                        f"{page_rect.width}x{page_rect.height}"
                    )

                native = coordinate_mapper.to_native(
                    geometry, overlay.x, overlay.y, overlay.width, overlay.height
                )

                try:
                    png_bytes = to_png(image_resolver(overlay.image_ref))
                except ImageDecodeError as e:
                    raise CompositingError(
                        f"Cannot decode image for overlay {overlay.id}: {e}"
                    ) from e
                except Exception as e:
                    raise CompositingError(
                        f"Cannot load image for overlay {overlay.id}: {e}"
                    ) from e

                x0, y0, x1, y1 = coordinate_mapper.native_to_page_rect(native, page_rect.height)
                page.insert_image(fitz.Rect(x0, y0, x1, y1), stream=png_bytes, keep_proportion=False)
                logger.debug(
                    f"Overlay {overlay.id} baked on page {overlay.page_index} at native "
                    f"({native.x:.2f}, {native.y:.2f}, {native.width:.2f}, {native.height:.2f})"
                )

            pdf_bytes: bytes = pdf_doc.tobytes()
        except CompositingError:
            raise
        except Exception as e:
            logger.error(f"Compositing failed: {e}")
            raise CompositingError(f"Compositing failed: {e}") from e
        finally:
            pdf_doc.close()

        logger.info(f"Baked {len(overlays)} overlay(s) into a {page_count}-page document")
        return pdf_bytes

    async def bake_async(
        self,
        base_document: bytes,
        overlays: Sequence[Overlay],
        page_geometries: Iterable[PageGeometry],
        image_resolver: ImageResolver,
        timeout: Optional[float] = None,
    ) -> bytes:
        """
        Bake on a snapshot of the inputs without blocking the event loop.

        Raises:
            BakeInProgressError: If this writer is already baking
            BakeTimeoutError: If ``timeout`` seconds elapse first
            CompositingError: As for :meth:`bake`
        """
        if self._lock.locked():
            raise BakeInProgressError("A bake is already in progress for this document")

        async with self._lock:
            overlay_snapshot = [o.model_copy() for o in overlays]
            geometry_snapshot = list(page_geometries)
            try:
                return await asyncio.wait_for(
                    self._run(base_document, overlay_snapshot, geometry_snapshot, image_resolver),
                    timeout,
                )
            except asyncio.TimeoutError as e:
                logger.error(f"Bake timed out after {timeout}s")
                raise BakeTimeoutError(f"Bake exceeded {timeout}s") from e

    async def _run(
        self,
        base_document: bytes,
        overlays: list[Overlay],
        geometries: list[PageGeometry],
        image_resolver: ImageResolver,
    ) -> bytes:
        images: dict[str, bytes] = {}
        for overlay in overlays:
            if overlay.image_ref not in images:
                images[overlay.image_ref] = await self._resolve(image_resolver, overlay)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self.bake, base_document, overlays, geometries, images.__getitem__
        )

    @staticmethod
    async def _resolve(image_resolver: ImageResolver, overlay: Overlay) -> bytes:
        try:
            result = image_resolver(overlay.image_ref)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            logger.error(f"Failed to resolve image for overlay {overlay.id}: {e}")
            raise CompositingError(f"Cannot load image for overlay {overlay.id}: {e}") from e
