"""Request and response bodies for the signing API."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docsign.models.overlay import Overlay
from docsign.models.signature import SignatureRecord


class GeometryReport(BaseModel):
    """Rendered and native size of one page, as measured by the viewer."""

    rendered_width: float = Field(..., gt=0)
    rendered_height: float = Field(..., gt=0)
    native_width: float = Field(..., gt=0)
    native_height: float = Field(..., gt=0)
    surface_left: Optional[float] = None
    surface_top: Optional[float] = None


class PlaceSignatureRequest(BaseModel):
    """Place a fresh signature (``data_url``) or one from the history (``signature_id``)."""

    model_config = ConfigDict(populate_by_name=True)

    data_url: Optional[str] = Field(default=None, alias="dataUrl")
    signature_id: Optional[str] = None
    remember: bool = True
    transparent_background: bool = False

    @model_validator(mode="after")
    def exactly_one_source(self) -> "PlaceSignatureRequest":
        if (self.data_url is None) == (self.signature_id is None):
            raise ValueError("Provide exactly one of data_url or signature_id")
        return self


class SaveSignatureRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data_url: str = Field(..., alias="dataUrl")


class OverlayListResponse(BaseModel):
    locator: str
    revision: int
    selected_id: Optional[str]
    mode: str
    overlays: list[Overlay]


class SaveResponse(BaseModel):
    status: str = "saved"
    locator: str
    document_hash: str
    committed: int
    revision: int


class SignatureListResponse(BaseModel):
    signatures: list[SignatureRecord]
