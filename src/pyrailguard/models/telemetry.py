"""Vehicle telemetry model."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from pyrailguard.models.geo import GeoPoint


class VehicleTelemetry(BaseModel):
    """Position and speed of one vehicle at a point in time.

    Speeds are in km/h.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    id: str = Field(validation_alias=AliasChoices("id", "_id", "trainId", "vehicle_id"))
    position: GeoPoint
    current_speed: float = Field(ge=0.0, allow_inf_nan=False, validation_alias=AliasChoices("current_speed", "currentSpeed"))
    nominal_speed: float = Field(gt=0.0, allow_inf_nan=False, validation_alias=AliasChoices("nominal_speed", "nominalSpeed"))
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        validation_alias=AliasChoices("last_updated", "lastUpdated", "updatedAt"),
    )

    @field_validator("last_updated")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
