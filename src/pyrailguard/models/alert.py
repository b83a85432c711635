"""Hazard alert models."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from pyrailguard.models.geo import GeoPoint, coerce_geo_point


class AlertSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertType(StrEnum):
    """Alert category.

    Values the alert service sends that have no mapped member resolve to
    ``OTHER`` instead of raising ``ValueError``.
    """

    ANIMAL_DETECTED = "animal_detected"
    ANIMAL_PERSISTENT = "animal_persistent"
    TRAIN_APPROACHING = "train_approaching"
    SPEED_REDUCTION = "speed_reduction"
    EMERGENCY = "emergency"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value: object) -> AlertType:
        return cls.OTHER


class AlertStatus(StrEnum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    FALSE_ALARM = "false_alarm"


class HazardAlert(BaseModel):
    """A georeferenced hazard alert, as returned by the alert service.

    The alert service nests the origin under the reporting camera
    (``camera.location.coordinates``); it is lifted into :attr:`origin`.
    An unusable origin becomes ``None`` so the alert is skipped by
    proximity filtering rather than rejected.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    id: str = Field(validation_alias=AliasChoices("id", "_id", "alertId"))
    severity: AlertSeverity = Field(validation_alias=AliasChoices("severity", "alertSeverity"))
    type: AlertType = Field(default=AlertType.OTHER, validation_alias=AliasChoices("type", "alertType"))
    status: AlertStatus = AlertStatus.ACTIVE
    origin: GeoPoint | None = None
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "createdAt"))
    notes: str | None = None
    camera_id: str | None = Field(default=None, validation_alias=AliasChoices("camera_id", "cameraId"))
    """Identifier of the reporting camera, for display."""
    railway_section: str | None = Field(
        default=None,
        validation_alias=AliasChoices("railway_section", "railwaySection"),
    )
    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload."""

    @model_validator(mode="before")
    @classmethod
    def _lift_camera_fields(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        camera = values.get("camera")
        if isinstance(camera, dict):
            if "origin" not in merged:
                merged["origin"] = camera.get("location")
            merged.setdefault("cameraId", camera.get("cameraId"))
            merged.setdefault("railwaySection", camera.get("railwaySection"))
        merged.setdefault("raw", values)
        return merged

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        text = str(value).strip() if value is not None else ""
        if not text:
            raise ValueError("id must be non-empty")
        return text

    @field_validator("origin", mode="before")
    @classmethod
    def _coerce_origin(cls, value: Any) -> GeoPoint | None:
        return coerce_geo_point(value)

    @field_validator("created_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def is_active(self) -> bool:
        return self.status == AlertStatus.ACTIVE


class ProximityResult(BaseModel):
    """An alert annotated with its distance to a vehicle, valid for one tick."""

    model_config = ConfigDict(frozen=True)

    alert: HazardAlert
    distance_km: float = Field(ge=0.0)

    @field_validator("distance_km")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("distance_km must be finite")
        return value
