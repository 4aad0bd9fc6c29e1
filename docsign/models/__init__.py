"""Signing workspace data models."""

from docsign.models.geometry import NativeRect, PageGeometry, SurfaceBounds
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
from docsign.models.signature import SignatureRecord

__all__ = [
    "PageGeometry",
    "SurfaceBounds",
    "NativeRect",
    "Overlay",
    "SignatureRecord",
    "PointerEvent",
    "PointerPhase",
    "InteractionState",
    "IdleState",
    "DraggingState",
    "ResizingState",
    "IDLE",
]
