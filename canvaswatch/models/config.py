"""Configuration models for canvas watching."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720


class BrowserConfig(BaseModel):
    headless: bool = True
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    device_scale_factor: float = Field(default=1.0, gt=0)
    user_agent: Optional[str] = None
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "load"


class WatchConfig(BaseModel):
    """Options recognised when a watch session starts."""

    # Change detection
    threshold_bits: int = Field(default=40, ge=1)
    grid_size: int = Field(default=32, ge=1)

    # Delivery
    auto_deliver: bool = False
    delivery_subdir: str = "canvas_auto"

    # Fallback capture
    target_context: Optional[str] = None
    scroll_settle_ms: int = Field(default=150, ge=0)
    capture_settle_ms: int = Field(default=140, ge=0)

    # Naming
    name_template: str = "canvas_{seq}.png"

    @field_validator("name_template")
    @classmethod
    def check_name_template(cls, v: str) -> str:
        try:
            v.format(seq=1, surface_id="s1")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid name template {v!r}: {e}") from e
        return v


class RunConfig(BaseModel):
    # Target
    target_url: str
    selector: str = "canvas"

    # Session
    duration_seconds: float = Field(default=30.0, gt=0)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)

    # Export
    output_dir: str = "./captures"
    rename_base: Optional[str] = None
    rename_pad: int = Field(default=0, ge=0)

    @classmethod
    def load(cls, path: str | Path) -> "RunConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
