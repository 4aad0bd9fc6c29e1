"""Placed signature overlay model."""

from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Overlay(BaseModel):
    """A signature image placed on a page, in render-space pixels.

    ``x``/``y`` is the top-left corner relative to the page surface of
    ``page_index``. ``aspect_ratio`` (width / height) is fixed when the
    overlay is created and every resize keeps it.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    image_ref: str = Field(..., min_length=1)
    x: float
    y: float
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    page_index: int = Field(..., ge=1)
    aspect_ratio: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _derive_aspect_ratio(self) -> "Overlay":
        if self.aspect_ratio is None:
            # object.__setattr__ avoids re-running validation on assignment
            object.__setattr__(self, "aspect_ratio", self.width / self.height)
        return self

    def contains(self, x: float, y: float) -> bool:
        """Inclusive bounding-box test in surface-relative render space."""
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height
