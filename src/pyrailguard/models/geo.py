"""Geographic point model."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

_logger = logging.getLogger(__name__)


class GeoPoint(BaseModel):
    """A WGS84 position.

    Parameters
    ----------
    longitude : float
        Longitude in degrees, ``[-180, 180]``.
    latitude : float
        Latitude in degrees, ``[-90, 90]``.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    longitude: float = Field(
        ge=-180.0,
        le=180.0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )
    latitude: float = Field(
        ge=-90.0,
        le=90.0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("latitude", "lat"),
    )

    @classmethod
    def from_coordinates(cls, coordinates: Sequence[float]) -> GeoPoint:
        """Build a point from a GeoJSON-style ``[longitude, latitude]`` pair."""
        if isinstance(coordinates, (str, bytes)) or len(coordinates) < 2:
            raise ValueError(f"expected [longitude, latitude], got {coordinates!r}")
        return cls(longitude=coordinates[0], latitude=coordinates[1])

    def as_coordinates(self) -> tuple[float, float]:
        return (self.longitude, self.latitude)


def coerce_geo_point(value: Any) -> GeoPoint | None:
    """Best-effort conversion of a payload value into a :class:`GeoPoint`.

    Accepts an existing point, a ``{"longitude", "latitude"}`` mapping, a
    GeoJSON ``{"coordinates": [lon, lat]}`` mapping or a bare pair.
    Anything unusable (missing, out of range, non-finite) yields ``None``.
    """
    if value is None:
        return None
    if isinstance(value, GeoPoint):
        return value
    try:
        if isinstance(value, Mapping):
            coordinates = value.get("coordinates")
            if coordinates is not None:
                return GeoPoint.from_coordinates(coordinates)
            return GeoPoint.model_validate(value)
        if isinstance(value, Sequence):
            return GeoPoint.from_coordinates(value)
    except (ValidationError, ValueError, TypeError):
        _logger.debug("Discarding unusable origin %r", value)
        return None
    return None
