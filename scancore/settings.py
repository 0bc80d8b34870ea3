from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from scancore.exceptions import ConfigurationError
from scancore.geometry import contract

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

DEFAULT_CONFIG_PATH = Path("config/default.yaml")


class SceneSettings(BaseModel):
    # Corner detection (deg / m)
    corner_min_angle_deg: float = Field(contract.CORNER_MIN_ANGLE_DEG, ge=0.0, le=180.0)
    corner_max_angle_deg: float = Field(contract.CORNER_MAX_ANGLE_DEG, ge=0.0, le=180.0)
    corner_max_distance_m: float = Field(contract.CORNER_MAX_DISTANCE, gt=0.0)
    min_normal_length: float = Field(contract.MIN_NORMAL_LENGTH, gt=0.0)

    # Snapping (m)
    corner_snap_radius_m: float = Field(contract.CORNER_SNAP_RADIUS, ge=0.0)
    edge_snap_radius_m: float = Field(contract.EDGE_SNAP_RADIUS, ge=0.0)

    @model_validator(mode="after")
    def _check_angle_range(self) -> "SceneSettings":
        if self.corner_min_angle_deg > self.corner_max_angle_deg:
            raise ValueError("corner_min_angle_deg must not exceed corner_max_angle_deg")
        return self


class ProjectionSettings(BaseModel):
    convention: Literal["arkit", "opencv"] = "arkit"
    min_depth: float = Field(contract.MIN_PROJECTION_DEPTH, gt=0.0)


class EditorSettings(BaseModel):
    # Hit radii in view pixels
    endpoint_hit_radius_px: float = Field(22.0, gt=0.0)
    text_hit_radius_px: float = Field(30.0, gt=0.0)
    segment_hit_radius_px: float = Field(30.0, gt=0.0)
    default_view_size: tuple[float, float] = (1000.0, 1000.0)

    # Frames (normalized)
    default_frame_size: float = Field(contract.DEFAULT_FRAME_SIZE, gt=0.0, le=1.0)
    min_frame_size: float = Field(contract.MIN_FRAME_SIZE, gt=0.0, le=1.0)
    max_frame_size: float = Field(contract.MAX_FRAME_SIZE, gt=0.0, le=1.0)
    perspective_frame_fraction: float = Field(contract.DEFAULT_FRAME_SIZE, gt=0.0, le=1.0)

    # Distance estimation
    estimated_meters_per_pixel: float = Field(contract.ESTIMATED_METERS_PER_PIXEL, gt=0.0)
    min_pixel_distance: float = Field(contract.MIN_PIXEL_DISTANCE, ge=0.0)

    undo_capacity: int = Field(contract.UNDO_CAPACITY, ge=1, le=500)
    duplicate_offset: float = Field(0.03, ge=0.0, le=0.5)

    palette: list[str] = Field(default_factory=lambda: list(contract.FRAME_PALETTE))
    default_color: str = contract.DEFAULT_COLOR
    text_color: str = "#FFFFFF"

    @field_validator("palette", mode="before")
    def _normalize_palette(cls, value: Any) -> list[str]:  # noqa: D401
        if value is None:
            return list(contract.FRAME_PALETTE)
        if isinstance(value, str):
            value = [value]
        colors = [str(item).strip() for item in value if str(item).strip()]
        return colors or list(contract.FRAME_PALETTE)

    @field_validator("default_view_size")
    def _positive_view(cls, value: tuple[float, float]) -> tuple[float, float]:  # noqa: D401
        if value[0] <= 0 or value[1] <= 0:
            raise ValueError("default_view_size must be positive")
        return value

    @model_validator(mode="after")
    def _check_frame_bounds(self) -> "EditorSettings":
        if self.min_frame_size > self.max_frame_size:
            raise ValueError("min_frame_size must not exceed max_frame_size")
        return self


class FloorPlanSettings(BaseModel):
    # Meters, top-down XZ plane
    wall_thickness_m: float = Field(contract.WALL_THICKNESS, gt=0.0)
    corner_join_radius_m: float = Field(contract.CORNER_JOIN_RADIUS, ge=0.0)
    proximity_join_m: float = Field(contract.PROXIMITY_JOIN_DISTANCE, ge=0.0)
    bounds_padding_m: float = Field(contract.FLOOR_PLAN_PADDING, ge=0.0)


class StorageSettings(BaseModel):
    backend: Literal["local", "s3"] = "local"
    root: Path = Path("captures")
    bucket: str | None = None
    region: str | None = None
    prefix: str = ""

    @model_validator(mode="after")
    def _bucket_for_s3(self) -> "StorageSettings":
        if self.backend == "s3" and not self.bucket:
            raise ValueError("storage.bucket is required for the s3 backend")
        return self


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False
    log_file: Path | None = None


class Settings(BaseModel):
    scene: SceneSettings = Field(default_factory=SceneSettings)
    projection: ProjectionSettings = Field(default_factory=ProjectionSettings)
    editor: EditorSettings = Field(default_factory=EditorSettings)
    floor_plan: FloorPlanSettings = Field(default_factory=FloorPlanSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from a YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses
                the SCANCORE_CONFIG environment variable or config/default.yaml.

        Returns:
            Settings instance with loaded configuration. Built-in defaults are
            used when no explicit file is requested and the default is absent.

        Raises:
            ConfigurationError: If an explicit file is missing or invalid.
        """
        env_path = os.getenv("SCANCORE_CONFIG")
        explicit = path is not None or bool(env_path)
        config_path = path or Path(env_path or DEFAULT_CONFIG_PATH)
        if not config_path.exists():
            if explicit:
                raise ConfigurationError(
                    f"Configuration file not found: {config_path}",
                    {"path": str(config_path)},
                )
            return cls()
        try:
            with config_path.open("r", encoding="utf-8") as fp:
                payload = yaml.safe_load(fp) or {}
            return cls(**payload)
        except Exception as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}", {"path": str(config_path)}) from exc


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    return Settings.load(Path(path) if path else None)


__all__ = [
    "Settings",
    "SceneSettings",
    "ProjectionSettings",
    "EditorSettings",
    "FloorPlanSettings",
    "StorageSettings",
    "LoggingSettings",
    "get_settings",
]
