"""Sensor batch payload validation."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, List, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from parkprice.core.abstractions import FREE, OCCUPIED

__all__ = ["DecodeError", "SensorBatch", "SpotReading", "decode_batch"]


class DecodeError(ValueError):
    """Raised when an ingestion payload cannot be turned into a batch."""


def _ensure_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError("timestamp must be a date string or epoch milliseconds")
    elif isinstance(value, (int, float)):
        # sensors send JavaScript style epoch milliseconds
        try:
            dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError("timestamp out of range") from exc
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError("timestamp must be a date string or epoch milliseconds")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class SpotReading(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    s: Any = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def status(self) -> str:
        # only the JSON number 1 means free; strings, booleans and null do not
        if isinstance(self.s, (int, float)) and not isinstance(self.s, bool) and self.s == 1:
            return FREE
        return OCCUPIED


class SensorBatch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    timestamp: datetime
    parking_status: List[SpotReading] = Field(..., min_length=1)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _validate_timestamp(cls, value: Any) -> datetime:
        return _ensure_datetime(value)


def decode_batch(payload: Union[bytes, str, dict]) -> SensorBatch:
    """Validate a raw payload; the whole batch is rejected on any error."""

    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("Payload is not valid UTF-8") from exc
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise DecodeError("Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise DecodeError("Payload must be a JSON object")
    try:
        return SensorBatch.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"Invalid sensor batch: {exc.error_count()} error(s)") from exc
