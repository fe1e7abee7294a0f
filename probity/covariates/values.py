"""Covariate values.

A covariate value is one of a closed set of variants:

- ``StringValue``: an opaque label such as ``"EU"`` or ``"WEEKEND"``.
- ``TimeWindowValue``: a local time window in an IANA zone. A window whose
  start equals its end is a point in time.

Every value has a canonical string form, which is what gets hashed into
baseline filenames and compared by the string matcher.
"""

from __future__ import annotations

import hashlib
from datetime import time
from typing import Annotated, Any, Literal, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

NOT_SET_TEXT = "not_set"
_SECONDS_PER_DAY = 24 * 60 * 60


def _format_time(value: time) -> str:
    """Render a local time as HH:MM, adding seconds only when present."""
    if value.second == 0 and value.microsecond == 0:
        return value.strftime("%H:%M")
    return value.isoformat()


def _seconds(value: time) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second


def sha256_hex(text: str) -> str:
    """Return the SHA-256 hex digest of UTF-8 text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class StringValue(BaseModel):
    """An opaque string covariate value."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["string"] = "string"
    text: str

    def canonical(self) -> str:
        return self.text

    def content_hash(self) -> str:
        return sha256_hex(self.canonical())

    @property
    def is_not_set(self) -> bool:
        """True for the sentinel that marks an unresolvable covariate."""
        return self.text == NOT_SET_TEXT

    def __str__(self) -> str:
        return self.text


class TimeWindowValue(BaseModel):
    """A local time window ``[start, end]`` in a named timezone.

    When ``start > end`` the window wraps past midnight.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["time_window"] = "time_window"
    start: time
    end: time
    zone: str

    @field_validator("zone")
    @classmethod
    def validate_zone(cls, v: str) -> str:
        """Require a resolvable IANA zone identifier."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v!r}") from e
        return v

    @classmethod
    def point(cls, at: time, zone: str) -> TimeWindowValue:
        """Build a zero-width window at a single local time."""
        return cls(start=at, end=at, zone=zone)

    @classmethod
    def parse(cls, text: str) -> TimeWindowValue:
        """Parse the canonical ``"HH:MM-HH:MM Zone"`` form.

        Args:
            text: Canonical window text

        Returns:
            The parsed window

        Raises:
            ValueError: If the text is not a canonical window

        """
        times, sep, zone = text.strip().rpartition(" ")
        start_text, dash, end_text = times.partition("-")
        if not sep or not dash or not zone:
            raise ValueError(f"Invalid time window: {text!r}")
        return cls(
            start=time.fromisoformat(start_text),
            end=time.fromisoformat(end_text),
            zone=zone,
        )

    @property
    def is_point(self) -> bool:
        return self.start == self.end

    @property
    def wraps_midnight(self) -> bool:
        return self.start > self.end

    def contains(self, at: time) -> bool:
        """Whether a local time falls inside the window, both ends inclusive."""
        if self.wraps_midnight:
            return at >= self.start or at <= self.end
        return self.start <= at <= self.end

    def covers(self, other: TimeWindowValue) -> bool:
        """Whether every instant of ``other`` lies inside this window.

        Both windows are measured forward from this window's start, so a
        window that wraps past midnight is followed through midnight rather
        than judged by its ends alone.
        """
        origin = _seconds(self.start)
        span = (_seconds(self.end) - origin) % _SECONDS_PER_DAY
        offset = (_seconds(other.start) - origin) % _SECONDS_PER_DAY
        other_span = (_seconds(other.end) - _seconds(other.start)) % _SECONDS_PER_DAY
        return offset + other_span <= span

    def canonical(self) -> str:
        return f"{_format_time(self.start)}-{_format_time(self.end)} {self.zone}"

    def content_hash(self) -> str:
        return sha256_hex(self.canonical())

    def __str__(self) -> str:
        return self.canonical()


CovariateValue = Annotated[Union[StringValue, TimeWindowValue], Field(discriminator="kind")]

NOT_SET = StringValue(text=NOT_SET_TEXT)


def is_not_set(value: StringValue | TimeWindowValue | None) -> bool:
    """True when a value is missing or is the not-set sentinel."""
    return value is None or (isinstance(value, StringValue) and value.is_not_set)


def value_to_data(value: StringValue | TimeWindowValue) -> Any:
    """Serialize a value for YAML: plain text, or ``{"window": ...}``."""
    if isinstance(value, TimeWindowValue):
        return {"window": value.canonical()}
    return value.text


def value_from_data(data: Any) -> StringValue | TimeWindowValue:
    """Inverse of ``value_to_data``.

    Raises:
        ValueError: If the data is neither a string nor a window mapping

    """
    if isinstance(data, dict) and "window" in data:
        return TimeWindowValue.parse(str(data["window"]))
    if isinstance(data, (str, int, float, bool)):
        return StringValue(text=str(data))
    raise ValueError(f"Unsupported covariate value: {data!r}")
