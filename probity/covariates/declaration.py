"""Covariate declarations.

A use case declares which environmental factors (covariates) condition its
behaviour. The declaration is an ordered, duplicate-free list of keys; the
order is significant because it fixes the order of value hashes in baseline
filenames and of entries in resolved profiles.

Standard covariates can additionally be partitioned into labelled groups:
days of the week, time-of-day periods, and regions.
"""

from __future__ import annotations

from datetime import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .values import sha256_hex

DECLARATION_HASH_LENGTH = 8

DAY_NAMES: tuple[str, ...] = (
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
)
WEEKEND_DAYS = frozenset({"SATURDAY", "SUNDAY"})
WEEKDAY_DAYS = frozenset(DAY_NAMES) - WEEKEND_DAYS

MINUTES_PER_DAY = 24 * 60


class StandardCovariate(str, Enum):
    """Covariate keys with built-in resolvers."""

    DAY_OF_WEEK = "day_of_week"
    TIME_OF_DAY = "time_of_day"
    REGION = "region"
    TIMEZONE = "timezone"

    @classmethod
    def is_standard(cls, key: str) -> bool:
        return key in {member.value for member in cls}


def derive_day_group_label(days: frozenset[str] | set[str]) -> str:
    """Derive a label for a set of day names.

    The canonical weekend and weekday sets get ``WEEKEND`` and ``WEEKDAY``;
    anything else is the day names in week order joined with underscores.
    """
    normalized = frozenset(day.upper() for day in days)
    if normalized == WEEKEND_DAYS:
        return "WEEKEND"
    if normalized == WEEKDAY_DAYS:
        return "WEEKDAY"
    return "_".join(day for day in DAY_NAMES if day in normalized)


def _minutes(at: time) -> int:
    return at.hour * 60 + at.minute


# -----------------------------------------------------------------------------
# Partition definitions
# -----------------------------------------------------------------------------


class DayGroupDefinition(BaseModel):
    """A labelled group of days, e.g. WEEKEND = {SATURDAY, SUNDAY}."""

    model_config = ConfigDict(frozen=True)

    days: frozenset[str]
    label: str = ""

    @field_validator("days")
    @classmethod
    def validate_days(cls, v: frozenset[str]) -> frozenset[str]:
        """Normalize day names and reject unknown ones."""
        if not v:
            raise ValueError("A day group needs at least one day")
        normalized = frozenset(day.strip().upper() for day in v)
        unknown = normalized - set(DAY_NAMES)
        if unknown:
            raise ValueError(f"Unknown day names: {sorted(unknown)}")
        return normalized

    @model_validator(mode="after")
    def default_label(self) -> DayGroupDefinition:
        if not self.label:
            object.__setattr__(self, "label", derive_day_group_label(self.days))
        return self


class TimePeriodDefinition(BaseModel):
    """A half-open local time period ``[start, start + duration_hours)``.

    Periods never cross midnight.
    """

    model_config = ConfigDict(frozen=True)

    start: time
    duration_hours: int = Field(..., ge=1, le=24)
    label: str = ""

    @model_validator(mode="after")
    def validate_period(self) -> TimePeriodDefinition:
        end_minutes = _minutes(self.start) + self.duration_hours * 60
        if end_minutes > MINUTES_PER_DAY:
            raise ValueError(
                f"Time period starting {self.start.strftime('%H:%M')} "
                f"for {self.duration_hours}h crosses midnight"
            )
        if not self.label:
            object.__setattr__(
                self, "label", f"{self.start.strftime('%H:%M')}/{self.duration_hours}h"
            )
        return self

    @property
    def start_minutes(self) -> int:
        return _minutes(self.start)

    @property
    def end_minutes(self) -> int:
        """Exclusive end, in minutes after midnight."""
        return self.start_minutes + self.duration_hours * 60

    def contains(self, at: time) -> bool:
        return self.start_minutes <= _minutes(at) < self.end_minutes


class RegionGroupDefinition(BaseModel):
    """A labelled group of region codes, matched case-insensitively."""

    model_config = ConfigDict(frozen=True)

    label: str
    regions: frozenset[str]

    @field_validator("regions")
    @classmethod
    def normalize_regions(cls, v: frozenset[str]) -> frozenset[str]:
        if not v:
            raise ValueError("A region group needs at least one region")
        return frozenset(region.strip().upper() for region in v)


# -----------------------------------------------------------------------------
# Declaration
# -----------------------------------------------------------------------------


class CovariateDeclaration(BaseModel):
    """Ordered covariate keys declared by a use case, plus partition definitions."""

    model_config = ConfigDict(frozen=True)

    keys: tuple[str, ...] = ()
    day_groups: tuple[DayGroupDefinition, ...] = ()
    time_periods: tuple[TimePeriodDefinition, ...] = ()
    region_groups: tuple[RegionGroupDefinition, ...] = ()

    @field_validator("keys")
    @classmethod
    def validate_keys(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject blank and duplicate keys."""
        seen: set[str] = set()
        for key in v:
            if not key or not key.strip():
                raise ValueError("Covariate keys cannot be blank")
            if key in seen:
                raise ValueError(f"Duplicate covariate key: {key!r}")
            seen.add(key)
        return v

    @model_validator(mode="after")
    def validate_partitions(self) -> CovariateDeclaration:
        """Reject overlapping day groups, time periods, and region groups."""
        claimed_days: set[str] = set()
        for group in self.day_groups:
            overlap = claimed_days & group.days
            if overlap:
                raise ValueError(f"Days appear in more than one group: {sorted(overlap)}")
            claimed_days |= group.days

        ordered = sorted(self.time_periods, key=lambda p: p.start_minutes)
        for earlier, later in zip(ordered, ordered[1:]):
            if later.start_minutes < earlier.end_minutes:
                raise ValueError(f"Time periods overlap: {earlier.label} and {later.label}")

        claimed_regions: set[str] = set()
        for region_group in self.region_groups:
            overlap = claimed_regions & region_group.regions
            if overlap:
                raise ValueError(f"Regions appear in more than one group: {sorted(overlap)}")
            claimed_regions |= region_group.regions
        return self

    @classmethod
    def of(cls, *keys: str | StandardCovariate) -> CovariateDeclaration:
        """Build a declaration from keys alone."""
        return cls(keys=tuple(k.value if isinstance(k, StandardCovariate) else k for k in keys))

    @classmethod
    def empty(cls) -> CovariateDeclaration:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.keys

    def __len__(self) -> int:
        return len(self.keys)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, StandardCovariate):
            key = key.value
        return key in self.keys

    def declaration_hash(self) -> str:
        """Stable hash of the declared key list, empty for no covariates."""
        if self.is_empty:
            return ""
        content = "".join(f"{key}\n" for key in self.keys)
        return sha256_hex(content)[:DECLARATION_HASH_LENGTH]
