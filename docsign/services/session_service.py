"""Signing sessions: one placement workspace per shared document."""

import asyncio
import hashlib
from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel

from docsign.config import settings
from docsign.core.geometry_registry import PageGeometryRegistry, rescale_factors
from docsign.core.interaction import InteractionController, PointerEventHub
from docsign.core.overlay_store import OverlayStore
from docsign.models.geometry import PageGeometry
from docsign.models.interaction import InteractionState, PointerEvent, PointerPhase
from docsign.models.overlay import Overlay
from docsign.persistence.abstractions import IDocumentStore
from docsign.services.compositing_service import BakeInProgressError, CompositeWriter
from docsign.services.history_service import SignatureHistoryStore, UnknownSignatureError
from docsign.services.image_service import (
    ImageRegistry,
    decode_data_url,
    encode_data_url,
    image_size,
    remove_white_background,
)
from docsign.utils.audit import log_operation
from docsign.utils.logger import logger


class NothingToSaveError(Exception):
    """Raised when a save is requested with no overlays placed."""

    pass


class SessionClosedError(Exception):
    """Raised when a closed session is used, or its in-flight save is abandoned."""

    pass


class BakeResult(BaseModel):
    """Outcome of a successful save."""

    locator: str
    document_hash: str
    committed: int
    revision: int
    size: int


class SigningSession:
    """Placement workspace for one document.

    Holds the page geometries, overlays and interaction state for the
    document at ``locator``. Saving bakes the overlays into the stored
    document; nothing is written until then.
    """

    def __init__(
        self,
        locator: str,
        storage: IDocumentStore,
        history: SignatureHistoryStore,
    ):
        self.locator = locator
        self.storage = storage
        self.history = history

        self.registry = PageGeometryRegistry()
        self.store = OverlayStore()
        self.images = ImageRegistry()
        self.hub = PointerEventHub()
        self.controller = InteractionController(self.store, self.registry, self.hub)
        self.writer = CompositeWriter()

        self.revision = 0
        self._closed = False
        self._save_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_unsaved_changes(self) -> bool:
        return len(self.store) > 0

    @property
    def saving(self) -> bool:
        return self._save_task is not None and not self._save_task.done()

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Session for {self.locator} is closed")

    # -------- Page geometry ---------------------------------------------------
    def report_geometry(
        self,
        page_index: int,
        rendered_width: float,
        rendered_height: float,
        native_width: float,
        native_height: float,
        surface_left: Optional[float] = None,
        surface_top: Optional[float] = None,
    ) -> PageGeometry:
        """Register a page's geometry; overlays on the page follow a re-render."""
        self._ensure_open()
        previous = self.registry.get(page_index)
        geometry = self.registry.register(
            page_index,
            rendered_width,
            rendered_height,
            native_width,
            native_height,
            surface_left=surface_left,
            surface_top=surface_top,
        )

        if previous is not None and (
            previous.rendered_width != geometry.rendered_width
            or previous.rendered_height != geometry.rendered_height
        ):
            factor_x, factor_y = rescale_factors(previous, geometry)
            touched = self.store.rescale_page(page_index, factor_x, factor_y)
            if touched:
                logger.info(
                    f"Page {page_index} re-rendered, rescaled {touched} overlay(s) "
                    f"by {factor_x:.3f}x{factor_y:.3f}"
                )
        return geometry

    # -------- Placement -------------------------------------------------------
    def add_signature(
        self,
        data_url: str,
        remember: bool = True,
        transparent_background: bool = False,
    ) -> Overlay:
        """
        Place a newly captured signature and select it.

        Args:
            data_url: Base64 image data URL of the signature
            remember: Also record it at the front of the signature history
            transparent_background: Turn near-white pixels transparent first

        Raises:
            ImageDecodeError: If the image cannot be decoded
            StorageWriteError: If the history cannot be written (nothing is placed)
        """
        self._ensure_open()
        image_bytes = decode_data_url(data_url)
        if transparent_background:
            image_bytes = remove_white_background(image_bytes)
            data_url = encode_data_url(image_bytes)
        width, height = image_size(image_bytes)

        if remember:
            self.history.add(data_url)
        return self._place(data_url, width, height)

    def reuse_signature(self, record_id: str) -> Overlay:
        """Place a signature from the history, moving it to the front."""
        self._ensure_open()
        record = self.history.promote(record_id)
        if record is None:
            raise UnknownSignatureError(record_id)
        width, height = image_size(decode_data_url(record.data_url))
        return self._place(record.data_url, width, height)

    def _place(self, data_url: str, intrinsic_width: int, intrinsic_height: int) -> Overlay:
        aspect_ratio = intrinsic_width / intrinsic_height
        height = settings.overlay_initial_height
        overlay = self.store.add(
            image_ref=self.images.put(data_url),
            x=settings.overlay_initial_x,
            y=settings.overlay_initial_y,
            width=height * aspect_ratio,
            height=height,
            page_index=1,
            aspect_ratio=aspect_ratio,
        )
        self.store.select(overlay.id)
        logger.info(f"Placed overlay {overlay.id} on {self.locator} ({len(self.store)} pending)")
        return overlay

    def delete_selected(self) -> bool:
        self._ensure_open()
        return self.controller.delete_selected()

    def delete_overlay(self, overlay_id: str) -> bool:
        self._ensure_open()
        return self.store.delete(overlay_id)

    # -------- Pointer input ---------------------------------------------------
    def handle_pointer(self, event: PointerEvent) -> InteractionState:
        """Feed one pointer event to the interaction controller."""
        self._ensure_open()
        if event.phase == PointerPhase.DOWN:
            self.controller.pointer_down(event)
        elif not self.hub.dispatch(event) and event.phase == PointerPhase.UP:
            # Presses on empty canvas hold no listeners but still end in a click
            self.controller.pointer_up(event)
        return self.controller.state

    def handle_raw_pointer(self, raw: dict[str, Any]) -> InteractionState:
        return self.handle_pointer(PointerEvent.from_raw(raw))

    def pointer_down(self, x: float, y: float, pointer_type: str = "mouse") -> InteractionState:
        return self.handle_pointer(PointerEvent.down(x, y, pointer_type))

    def pointer_move(self, x: float, y: float, pointer_type: str = "mouse") -> InteractionState:
        return self.handle_pointer(PointerEvent.move(x, y, pointer_type))

    def pointer_up(self, x: float, y: float, pointer_type: str = "mouse") -> InteractionState:
        return self.handle_pointer(PointerEvent.up(x, y, pointer_type))

    # -------- Save ------------------------------------------------------------
    async def save(self, timeout: Optional[float] = None) -> BakeResult:
        """
        Bake every pending overlay into the stored document.

        On success the committed overlays are removed and ``revision`` is
        bumped. On any failure the overlays stay as they were.

        Raises:
            NothingToSaveError: If no overlays are placed
            BakeInProgressError: If a save is already running
            SessionClosedError: If the session is closed before the write
            BakeTimeoutError: If the bake exceeds ``timeout``
            CompositingError: If the overlays cannot be baked
            StorageError: If the document cannot be read or written
        """
        self._ensure_open()
        if self.saving:
            raise BakeInProgressError(f"A save is already in progress for {self.locator}")
        if not len(self.store):
            raise NothingToSaveError("No signatures placed")

        overlays = self.store.snapshot()
        geometries = self.registry.all()
        if timeout is None:
            timeout = settings.bake_timeout_seconds

        self._save_task = asyncio.ensure_future(self._commit(overlays, geometries, timeout))
        try:
            return await self._save_task
        except asyncio.CancelledError:
            if self._closed:
                raise SessionClosedError(f"Session for {self.locator} closed during save") from None
            raise

    async def _commit(
        self,
        overlays: list[Overlay],
        geometries: list[PageGeometry],
        timeout: Optional[float],
    ) -> BakeResult:
        loop = asyncio.get_running_loop()
        base_document = await loop.run_in_executor(None, self.storage.fetch, self.locator)
        metadata = await loop.run_in_executor(None, self.storage.metadata, self.locator)

        baked = await self.writer.bake_async(
            base_document, overlays, geometries, self.images.resolve, timeout=timeout
        )
        if self._closed:
            raise SessionClosedError(f"Session for {self.locator} closed during save")

        metadata = {k: str(v) for k, v in metadata.items() if k != "content_type"}
        metadata["signed-at"] = datetime.now(UTC).isoformat()
        await loop.run_in_executor(
            None, self.storage.store, self.locator, baked, "application/pdf", metadata
        )

        committed = self.store.discard(o.id for o in overlays)
        self.revision += 1
        document_hash = hashlib.sha256(baked).hexdigest()

        log_operation(
            operation="save",
            document_hash=document_hash,
            locator=self.locator,
            filename=metadata.get("original-filename"),
            metadata={"overlays": len(overlays), "revision": self.revision},
        )
        logger.info(f"Saved {len(overlays)} signature(s) into {self.locator} (revision {self.revision})")

        return BakeResult(
            locator=self.locator,
            document_hash=document_hash,
            committed=committed,
            revision=self.revision,
            size=len(baked),
        )

    # -------- Lifecycle -------------------------------------------------------
    async def close(self) -> None:
        """Release pointer listeners and abandon any in-flight save."""
        if self._closed:
            return
        self._closed = True
        self.controller.teardown()

        task = self._save_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            logger.warning(f"Abandoned in-flight save for {self.locator}")
        logger.info(f"Closed session for {self.locator}")

    async def __aenter__(self) -> "SigningSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class SessionManager:
    """Open signing sessions keyed by document locator."""

    def __init__(self, storage: IDocumentStore, history: SignatureHistoryStore):
        self.storage = storage
        self.history = history
        self._sessions: dict[str, SigningSession] = {}

    def open(self, locator: str) -> SigningSession:
        """Return the session for a document, creating it on first use."""
        session = self._sessions.get(locator)
        if session is None:
            session = SigningSession(locator, self.storage, self.history)
            self._sessions[locator] = session
            logger.info(f"Opened session for {locator}")
        return session

    def get(self, locator: str) -> Optional[SigningSession]:
        return self._sessions.get(locator)

    async def close(self, locator: str) -> bool:
        session = self._sessions.pop(locator, None)
        if session is None:
            return False
        await session.close()
        return True

    async def close_all(self) -> None:
        for locator in list(self._sessions):
            await self.close(locator)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, locator: object) -> bool:
        return locator in self._sessions
