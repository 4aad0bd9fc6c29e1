"""Page geometry models shared by the placement engine and the compositor."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PageGeometry(BaseModel):
    """Rendered and native size of one page.

    Rendered dimensions are render-space pixels and change with zoom, window
    size or device pixel ratio. Native dimensions are the document's own
    units (PDF points) and never change for a given page.
    """

    model_config = ConfigDict(frozen=True)

    page_index: int = Field(..., ge=1, description="1-based page number")
    rendered_width: float = Field(..., gt=0)
    rendered_height: float = Field(..., gt=0)
    native_width: float = Field(..., gt=0)
    native_height: float = Field(..., gt=0)
    surface_left: Optional[float] = Field(
        default=None, description="Viewport x of the page surface's top-left corner"
    )
    surface_top: Optional[float] = Field(
        default=None, description="Viewport y of the page surface's top-left corner"
    )

    @property
    def scale_x(self) -> float:
        return self.native_width / self.rendered_width

    @property
    def scale_y(self) -> float:
        return self.native_height / self.rendered_height

    @property
    def has_surface_origin(self) -> bool:
        return self.surface_left is not None and self.surface_top is not None


class SurfaceBounds(BaseModel):
    """On-screen rectangle of a page surface, in viewport coordinates."""

    model_config = ConfigDict(frozen=True)

    page_index: int
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def contains(self, x: float, y: float) -> bool:
        """Inclusive containment test."""
        return self.left <= x <= self.right and self.top <= y <= self.bottom


class NativeRect(BaseModel):
    """Rectangle in native units with the origin at the page's bottom-left."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float
