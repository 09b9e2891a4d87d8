"""Catalog data structures produced by capture."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

CaptureMethod = Literal["direct", "fallback"]
CaptureSource = Literal["watch", "scan"]


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle in CSS or screenshot pixels."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


class CapturedImage(BaseModel):
    """Still image returned by a capture tier."""
    model_config = ConfigDict(frozen=True)

    data: bytes  # PNG
    width: int
    height: int
    method: CaptureMethod


class CatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    data: bytes = Field(repr=False)  # PNG payload
    width: int
    height: int
    method: CaptureMethod
    source: CaptureSource = "watch"
    surface_id: str = ""
    sequence: int = 0
    captured_at: str = ""  # ISO timestamp

    @property
    def media_type(self) -> str:
        return "image/png"

    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{base64.b64encode(self.data).decode()}"

    def metadata(self) -> dict:
        """Entry fields without the image payload."""
        return self.model_dump(exclude={"data"})
