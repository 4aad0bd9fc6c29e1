"""Saved signature model for the reuse history."""

from pydantic import BaseModel, ConfigDict, Field


class SignatureRecord(BaseModel):
    """A captured signature image kept for reuse.

    Serialised as ``{"id", "dataUrl", "timestamp"}`` where ``timestamp`` is
    milliseconds since the epoch.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    data_url: str = Field(..., alias="dataUrl", min_length=1)
    timestamp: int = Field(..., ge=0)

    def to_json_dict(self) -> dict:
        """Convert to the persisted JSON layout."""
        return {"id": self.id, "dataUrl": self.data_url, "timestamp": self.timestamp}
