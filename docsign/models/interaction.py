"""Pointer events and interaction states for overlay manipulation."""

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class PointerPhase(str, Enum):
    """Phase of a unified pointer event."""

    DOWN = "down"
    MOVE = "move"
    UP = "up"


_RAW_PHASES = {
    "mousedown": PointerPhase.DOWN,
    "touchstart": PointerPhase.DOWN,
    "pointerdown": PointerPhase.DOWN,
    "mousemove": PointerPhase.MOVE,
    "touchmove": PointerPhase.MOVE,
    "pointermove": PointerPhase.MOVE,
    "mouseup": PointerPhase.UP,
    "touchend": PointerPhase.UP,
    "touchcancel": PointerPhase.UP,
    "pointerup": PointerPhase.UP,
    "pointercancel": PointerPhase.UP,
}


class PointerEvent(BaseModel):
    """Mouse, touch and pen input in one vocabulary, in viewport coordinates."""

    model_config = ConfigDict(frozen=True)

    phase: PointerPhase
    x: float
    y: float
    pointer_type: Literal["mouse", "touch", "pen"] = "mouse"

    @classmethod
    def down(cls, x: float, y: float, pointer_type: str = "mouse") -> "PointerEvent":
        return cls(phase=PointerPhase.DOWN, x=x, y=y, pointer_type=pointer_type)

    @classmethod
    def move(cls, x: float, y: float, pointer_type: str = "mouse") -> "PointerEvent":
        return cls(phase=PointerPhase.MOVE, x=x, y=y, pointer_type=pointer_type)

    @classmethod
    def up(cls, x: float, y: float, pointer_type: str = "mouse") -> "PointerEvent":
        return cls(phase=PointerPhase.UP, x=x, y=y, pointer_type=pointer_type)

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "PointerEvent":
        """Build a pointer event from a DOM-style mouse, touch or pointer payload.

        Touch payloads use the first entry of ``touches``, falling back to
        ``changedTouches`` (``touchend`` carries no active touches).

        Raises:
            ValueError: If the event type is unknown or carries no coordinates
        """
        event_type = str(raw.get("type", "")).lower()
        phase = _RAW_PHASES.get(event_type)
        if phase is None:
            raise ValueError(f"Unsupported pointer event type: {event_type!r}")

        if event_type.startswith("touch"):
            pointer_type = "touch"
            touches = raw.get("touches") or raw.get("changedTouches") or []
            if not touches:
                raise ValueError(f"Touch event {event_type!r} has no touch points")
            source = touches[0]
        elif event_type.startswith("pointer"):
            pointer_type = raw.get("pointerType") or "mouse"
            source = raw
        else:
            pointer_type = "mouse"
            source = raw

        try:
            x = float(source["clientX"])
            y = float(source["clientY"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Pointer event {event_type!r} has no client coordinates") from e

        return cls(phase=phase, x=x, y=y, pointer_type=pointer_type)


class IdleState(BaseModel):
    """No drag or resize in progress."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["idle"] = "idle"


class DraggingState(BaseModel):
    """An overlay follows the pointer; the grab offset stays constant."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["dragging"] = "dragging"
    overlay_id: str
    offset_x: float
    offset_y: float


class ResizingState(BaseModel):
    """An overlay is being resized from its bottom-right handle."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["resizing"] = "resizing"
    overlay_id: str
    anchor_width: float = Field(..., gt=0)
    anchor_height: float = Field(..., gt=0)
    anchor_pointer_x: float


InteractionState = Union[IdleState, DraggingState, ResizingState]

IDLE = IdleState()
