"""API routes: upload documents, place signatures, save and download."""

import hashlib
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Body, File, HTTPException, Response, UploadFile, status

from docsign.api.schemas import (
    GeometryReport,
    OverlayListResponse,
    PlaceSignatureRequest,
    SaveResponse,
    SaveSignatureRequest,
    SignatureListResponse,
)
from docsign.config import settings
from docsign.models.overlay import Overlay
from docsign.models.signature import SignatureRecord
from docsign.persistence.local import JsonFileKeyValueStore
from docsign.services.compositing_service import (
    BakeInProgressError,
    BakeTimeoutError,
    CompositingError,
)
from docsign.services.history_service import (
    InvalidSignatureError,
    SignatureHistoryStore,
    UnknownSignatureError,
)
from docsign.services.image_service import ImageDecodeError
from docsign.services.session_service import (
    NothingToSaveError,
    SessionClosedError,
    SessionManager,
    SigningSession,
)
from docsign.services.storage_service import (
    StorageError,
    StorageService,
    locator_for,
    new_share_id,
)
from docsign.utils.audit import log_operation
from docsign.utils.logger import logger
from docsign.utils.validators import (
    sanitize_string,
    validate_pdf_upload,
    validate_share_id,
    validate_upload_size,
)

router = APIRouter(tags=["documents"])

# ---------------------------------------------------------------------------
# Lazy-initialised services (avoids import-time side-effects)
# ---------------------------------------------------------------------------

_storage_service: StorageService | None = None
_history_store: SignatureHistoryStore | None = None
_session_manager: SessionManager | None = None


def _get_storage() -> StorageService:
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service


def _get_history() -> SignatureHistoryStore:
    global _history_store
    if _history_store is None:
        _history_store = SignatureHistoryStore(
            JsonFileKeyValueStore(settings.get_signature_history_path())
        )
    return _history_store


def _get_sessions() -> SessionManager:
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager(_get_storage(), _get_history())
    return _session_manager


async def close_sessions() -> None:
    """Close every open session (application shutdown)."""
    if _session_manager is not None:
        await _session_manager.close_all()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

@router.post("/documents", status_code=status.HTTP_201_CREATED)
async def upload_document(
        file: UploadFile = File(..., description="PDF document to sign"),
) -> dict:
    """Store an uploaded PDF under a new share id."""
    if not validate_pdf_upload(file.filename, file.content_type):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Only PDF files are accepted")

    content = await _read_upload(file)
    filename = sanitize_string(file.filename, max_length=255)

    share_id = new_share_id()
    locator = locator_for(share_id)
    try:
        _get_storage().store(
            locator,
            content,
            content_type="application/pdf",
            metadata={
                "original-filename": filename,
                "uploaded-at": datetime.now(UTC).isoformat(),
            },
        )
    except StorageError as exc:
        logger.error(f"Storage error: {exc}", exc_info=True)
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Upload failed: {exc}") from exc

    log_operation(
        operation="upload",
        document_hash=hashlib.sha256(content).hexdigest(),
        locator=locator,
        filename=filename,
        metadata={"size": len(content)},
    )
    logger.info(f"upload | share_id={share_id} filename='{filename}' size={len(content)}")

    return {
        "status": "uploaded",
        "share_id": share_id,
        "locator": locator,
        "filename": filename,
        "size": len(content),
    }


@router.get("/documents/{share_id}")
async def download_document(share_id: str, delete_after: bool = False) -> Response:
    """Download the current document; optionally delete it afterwards."""
    locator = _existing_locator(share_id)

    session = _get_sessions().get(locator)
    if session is not None and session.has_unsaved_changes:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            detail="Document has unsaved signatures; save or remove them first",
        )

    storage = _get_storage()
    try:
        content = storage.fetch(locator)
        filename = storage.metadata(locator).get("original-filename") or f"{share_id}.pdf"
        if delete_after:
            storage.delete(locator)
    except StorageError as exc:
        logger.error(f"Storage error: {exc}", exc_info=True)
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Download failed: {exc}") from exc

    if delete_after:
        await _get_sessions().close(locator)

    log_operation(
        operation="download-and-delete" if delete_after else "download",
        document_hash=hashlib.sha256(content).hexdigest(),
        locator=locator,
        filename=filename,
    )

    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{_ascii_filename(filename)}"'},
    )


@router.put("/documents/{share_id}/pages/{page_index}/geometry")
async def report_page_geometry(share_id: str, page_index: int, report: GeometryReport) -> dict:
    """Record the rendered and native size of a page after it was drawn."""
    if page_index < 1:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Page index starts at 1")
    session = _open_session(share_id)

    geometry = session.report_geometry(
        page_index,
        report.rendered_width,
        report.rendered_height,
        report.native_width,
        report.native_height,
        surface_left=report.surface_left,
        surface_top=report.surface_top,
    )
    return {
        "geometry": geometry.model_dump(),
        "overlays": [o.model_dump() for o in session.store.on_page(page_index)],
    }


# ---------------------------------------------------------------------------
# Overlays
# ---------------------------------------------------------------------------

@router.get("/documents/{share_id}/overlays", response_model=OverlayListResponse)
async def list_overlays(share_id: str) -> OverlayListResponse:
    return _overlay_listing(_open_session(share_id))


@router.post(
    "/documents/{share_id}/overlays",
    status_code=status.HTTP_201_CREATED,
    response_model=Overlay,
)
async def place_signature(share_id: str, request: PlaceSignatureRequest) -> Overlay:
    """Place a new signature, or one from the history, on page 1 and select it."""
    session = _open_session(share_id)
    try:
        if request.signature_id is not None:
            return session.reuse_signature(request.signature_id)
        return session.add_signature(
            request.data_url,
            remember=request.remember,
            transparent_background=request.transparent_background,
        )
    except UnknownSignatureError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Signature not found") from exc
    except ImageDecodeError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=f"Invalid signature image: {exc}") from exc
    except StorageError as exc:
        logger.error(f"Storage error: {exc}", exc_info=True)
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to save signature: {exc}"
        ) from exc


@router.delete("/documents/{share_id}/overlays/selected")
async def delete_selected_overlay(share_id: str) -> dict:
    session = _open_session(share_id)
    selected_id = session.store.selected_id
    if not session.delete_selected():
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="No overlay selected")
    return {"deleted": selected_id}


@router.delete("/documents/{share_id}/overlays/{overlay_id}")
async def delete_overlay(share_id: str, overlay_id: str) -> dict:
    session = _open_session(share_id)
    if not session.delete_overlay(overlay_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Overlay not found")
    return {"deleted": overlay_id}


@router.post("/documents/{share_id}/pointer", response_model=OverlayListResponse)
async def pointer_event(share_id: str, event: dict[str, Any] = Body(...)) -> OverlayListResponse:
    """Feed a DOM-style mouse, touch or pointer event to the session."""
    session = _open_session(share_id)
    try:
        session.handle_raw_pointer(event)
    except ValueError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _overlay_listing(session)


@router.post("/documents/{share_id}/save", response_model=SaveResponse)
async def save_document(share_id: str) -> SaveResponse:
    """Bake every placed signature into the document and store it."""
    session = _open_session(share_id)
    try:
        result = await session.save()
    except NothingToSaveError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except BakeInProgressError as exc:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except SessionClosedError as exc:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except CompositingError as exc:
        logger.error(f"Compositing error: {exc}", exc_info=True)
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Save failed: {exc}") from exc
    except BakeTimeoutError as exc:
        raise HTTPException(status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
    except StorageError as exc:
        logger.error(f"Storage error: {exc}", exc_info=True)
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Save failed: {exc}") from exc

    return SaveResponse(
        locator=result.locator,
        document_hash=result.document_hash,
        committed=result.committed,
        revision=result.revision,
    )


@router.delete("/documents/{share_id}/session")
async def close_session(share_id: str) -> dict:
    """Discard unsaved overlays and release the session."""
    if not validate_share_id(share_id):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid share id")
    closed = await _get_sessions().close(locator_for(share_id))
    return {"closed": closed}


# ---------------------------------------------------------------------------
# Signature history
# ---------------------------------------------------------------------------

@router.get("/signatures", response_model=SignatureListResponse)
async def list_signatures() -> SignatureListResponse:
    return SignatureListResponse(signatures=_get_history().list())


@router.post("/signatures", status_code=status.HTTP_201_CREATED, response_model=SignatureRecord)
async def save_signature(request: SaveSignatureRequest) -> SignatureRecord:
    try:
        return _get_history().add(request.data_url)
    except InvalidSignatureError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to save signature: {exc}"
        ) from exc


@router.post("/signatures/{signature_id}/promote", response_model=SignatureRecord)
async def promote_signature(signature_id: str) -> SignatureRecord:
    try:
        record = _get_history().promote(signature_id)
    except StorageError as exc:
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to update history: {exc}"
        ) from exc
    if record is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Signature not found")
    return record


@router.delete("/signatures/{signature_id}")
async def delete_signature(signature_id: str) -> dict:
    try:
        removed = _get_history().remove(signature_id)
    except StorageError as exc:
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to update history: {exc}"
        ) from exc
    if not removed:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Signature not found")
    return {"deleted": signature_id}


@router.delete("/signatures")
async def clear_signatures() -> dict:
    try:
        _get_history().clear()
    except StorageError as exc:
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to clear history: {exc}"
        ) from exc
    return {"status": "cleared"}


# ---------------------------------------------------------------------------
# Shared private helpers
# ---------------------------------------------------------------------------

async def _read_upload(file: UploadFile) -> bytes:
    """Read file bytes, raising appropriate HTTP errors on failure."""
    try:
        content = await file.read()
    except Exception as exc:
        logger.error(f"Failed to read upload: {exc}")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to read uploaded file") from exc

    if not content:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    if not validate_upload_size(len(content), settings.max_upload_size_bytes):
        raise HTTPException(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.max_upload_size_mb}MB",
        )

    return content


def _existing_locator(share_id: str) -> str:
    """Locator of a stored document; 400 for a malformed id, 404 if absent."""
    if not validate_share_id(share_id):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid share id")
    locator = locator_for(share_id)
    try:
        found = _get_storage().exists(locator)
    except StorageError as exc:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Lookup failed: {exc}") from exc
    if not found:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Document not found")
    return locator


def _open_session(share_id: str) -> SigningSession:
    return _get_sessions().open(_existing_locator(share_id))


def _overlay_listing(session: SigningSession) -> OverlayListResponse:
    return OverlayListResponse(
        locator=session.locator,
        revision=session.revision,
        selected_id=session.store.selected_id,
        mode=session.controller.state.mode,
        overlays=list(session.store),
    )


def _ascii_filename(filename: str) -> str:
    """Header-safe file name for Content-Disposition."""
    return filename.encode("ascii", "replace").decode("ascii").replace('"', "_")
