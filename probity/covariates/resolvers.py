"""Covariate resolution.

Resolvers turn a ``ResolutionContext`` (the clock, the timezone, and the
properties and environment visible to the test) into a ``CovariateValue``.
A ``ResolverRegistry`` maps covariate keys to resolvers; unknown keys fall
back to a custom resolver that reads the key from the context.

The context carries everything a resolver may read, so resolution is
deterministic for a given context.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Protocol
from zoneinfo import ZoneInfo

from .declaration import (
    DAY_NAMES,
    MINUTES_PER_DAY,
    WEEKDAY_DAYS,
    WEEKEND_DAYS,
    CovariateDeclaration,
    DayGroupDefinition,
    RegionGroupDefinition,
    StandardCovariate,
    TimePeriodDefinition,
    derive_day_group_label,
)
from .profile import CovariateProfile, ProfileValue
from .values import NOT_SET, StringValue, TimeWindowValue

logger = logging.getLogger(__name__)

REGION_PROPERTY = "region"
REGION_ENV_VAR = "PROBITY_REGION"
CUSTOM_ENV_PREFIX = "PROBITY_"

UNDEFINED_REGION = "UNDEFINED"
OTHER_REGION = "OTHER"

DEFAULT_DAY_GROUPS: tuple[DayGroupDefinition, ...] = (
    DayGroupDefinition(days=WEEKDAY_DAYS),
    DayGroupDefinition(days=WEEKEND_DAYS),
)


@dataclass(frozen=True)
class ResolutionContext:
    """Everything a resolver may observe.

    Attributes:
        now: Current instant (timezone-aware)
        timezone: IANA zone used for local day and time
        experiment_start: Start of the measuring experiment, if any
        experiment_end: End of the measuring experiment, if any
        properties: Explicit key/value settings (highest precedence)
        environment: Environment variables visible to the test

    """

    now: datetime
    timezone: str = "UTC"
    experiment_start: datetime | None = None
    experiment_end: datetime | None = None
    properties: Mapping[str, str] = field(default_factory=dict)
    environment: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.now.tzinfo is None:
            raise ValueError("ResolutionContext.now must be timezone-aware")
        ZoneInfo(self.timezone)

    @classmethod
    def for_now(
        cls,
        timezone: str = "UTC",
        properties: Mapping[str, str] | None = None,
        environment: Mapping[str, str] | None = None,
    ) -> ResolutionContext:
        """Build a context from the system clock and process environment."""
        return cls(
            now=datetime.now(ZoneInfo(timezone)),
            timezone=timezone,
            properties=dict(properties or {}),
            environment=dict(os.environ if environment is None else environment),
        )

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def local(self, instant: datetime) -> datetime:
        return instant.astimezone(self.zone)

    @property
    def local_now(self) -> datetime:
        return self.local(self.now)

    def lookup(self, property_key: str, env_var: str) -> str | None:
        """Read a property, falling back to an environment variable."""
        value = self.properties.get(property_key)
        if value is None or not str(value).strip():
            value = self.environment.get(env_var)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()


class CovariateResolver(Protocol):
    """Resolves one covariate from a context."""

    def resolve(self, context: ResolutionContext) -> ProfileValue: ...


# -----------------------------------------------------------------------------
# Standard resolvers
# -----------------------------------------------------------------------------


class DayOfWeekResolver:
    """Resolves the current day to a group label.

    Days outside every declared group resolve to the remainder label, derived
    from the undeclared days. With no groups declared, WEEKDAY/WEEKEND apply.
    """

    def __init__(self, groups: tuple[DayGroupDefinition, ...] = ()) -> None:
        self.groups = groups or DEFAULT_DAY_GROUPS

    def remainder_label(self) -> str:
        claimed: set[str] = set()
        for group in self.groups:
            claimed |= group.days
        return derive_day_group_label(set(DAY_NAMES) - claimed)

    def resolve(self, context: ResolutionContext) -> ProfileValue:
        day = DAY_NAMES[context.local_now.weekday()]
        for group in self.groups:
            if day in group.days:
                return StringValue(text=group.label)
        return StringValue(text=self.remainder_label())


def _format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _format_gap(start: int, end: int) -> str:
    length = end - start
    if length % 60 == 0:
        return f"{_format_minutes(start)}/{length // 60}h"
    return f"{_format_minutes(start)}-{_format_minutes(end)}"


class TimePeriodResolver:
    """Resolves the current local time to a declared period label.

    Times outside every period resolve to a remainder label listing the
    uncovered gaps, e.g. ``"00:00/8h, 18:00/6h"``.
    """

    def __init__(self, periods: tuple[TimePeriodDefinition, ...]) -> None:
        self.periods = tuple(sorted(periods, key=lambda p: p.start_minutes))

    def remainder_label(self) -> str:
        gaps = []
        cursor = 0
        for period in self.periods:
            if period.start_minutes > cursor:
                gaps.append(_format_gap(cursor, period.start_minutes))
            cursor = max(cursor, period.end_minutes)
        if cursor < MINUTES_PER_DAY:
            gaps.append(_format_gap(cursor, MINUTES_PER_DAY))
        return ", ".join(gaps)

    def resolve(self, context: ResolutionContext) -> ProfileValue:
        local_time = context.local_now.time()
        for period in self.periods:
            if period.contains(local_time):
                return StringValue(text=period.label)
        return StringValue(text=self.remainder_label())


class TimeWindowResolver:
    """Resolves time of day as a window.

    During a measuring experiment the window spans the experiment; otherwise
    it is the current local time as a point.
    """

    def resolve(self, context: ResolutionContext) -> ProfileValue:
        if context.experiment_start is not None and context.experiment_end is not None:
            start = context.local(context.experiment_start).time()
            end = context.local(context.experiment_end).time()
            return TimeWindowValue(
                start=_truncate(start), end=_truncate(end), zone=context.timezone
            )
        return TimeWindowValue.point(_truncate(context.local_now.time()), context.timezone)


def _truncate(at: time) -> time:
    return at.replace(second=0, microsecond=0)


class RegionResolver:
    """Resolves the deployment region.

    The raw region comes from the ``region`` property, then the
    ``PROBITY_REGION`` environment variable. With groups declared, the raw
    code maps to its group label, ``OTHER`` when ungrouped, or ``UNDEFINED``
    when unset. Without groups the raw code is used as is.
    """

    def __init__(self, groups: tuple[RegionGroupDefinition, ...] = ()) -> None:
        self.groups = groups

    def resolve(self, context: ResolutionContext) -> ProfileValue:
        raw = context.lookup(REGION_PROPERTY, REGION_ENV_VAR)
        if not self.groups:
            return StringValue(text=raw) if raw else NOT_SET
        if raw is None:
            return StringValue(text=UNDEFINED_REGION)
        code = raw.upper()
        for group in self.groups:
            if code in group.regions:
                return StringValue(text=group.label)
        return StringValue(text=OTHER_REGION)


class TimezoneResolver:
    """Resolves the context's timezone id."""

    def resolve(self, context: ResolutionContext) -> ProfileValue:
        return StringValue(text=context.timezone)


def custom_env_var(key: str) -> str:
    """Environment variable consulted for a custom covariate key."""
    return CUSTOM_ENV_PREFIX + re.sub(r"[^A-Za-z0-9]", "_", key).upper()


class CustomCovariateResolver:
    """Reads a custom covariate from context properties or the environment."""

    def __init__(self, key: str) -> None:
        self.key = key

    def resolve(self, context: ResolutionContext) -> ProfileValue:
        value = context.lookup(self.key, custom_env_var(self.key))
        return StringValue(text=value) if value is not None else NOT_SET


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------


class ResolverRegistry:
    """Maps covariate keys to resolvers.

    Registries are immutable; ``with_resolver`` returns a new registry in
    which the later registration wins.
    """

    def __init__(self, resolvers: Mapping[str, CovariateResolver] | None = None) -> None:
        self._resolvers = dict(resolvers or {})

    @classmethod
    def standard(cls, declaration: CovariateDeclaration | None = None) -> ResolverRegistry:
        """Registry with the standard resolvers configured from a declaration.

        Time of day resolves to period labels when the declaration defines
        periods, and to a time window otherwise.
        """
        declaration = declaration or CovariateDeclaration.empty()
        time_resolver: CovariateResolver = (
            TimePeriodResolver(declaration.time_periods)
            if declaration.time_periods
            else TimeWindowResolver()
        )
        return cls(
            {
                StandardCovariate.DAY_OF_WEEK.value: DayOfWeekResolver(declaration.day_groups),
                StandardCovariate.TIME_OF_DAY.value: time_resolver,
                StandardCovariate.REGION.value: RegionResolver(declaration.region_groups),
                StandardCovariate.TIMEZONE.value: TimezoneResolver(),
            }
        )

    def with_resolver(self, key: str, resolver: CovariateResolver) -> ResolverRegistry:
        resolvers = dict(self._resolvers)
        resolvers[key] = resolver
        return ResolverRegistry(resolvers)

    def has(self, key: str) -> bool:
        return key in self._resolvers

    def get(self, key: str) -> CovariateResolver:
        """Resolver for a key, defaulting to a custom resolver."""
        resolver = self._resolvers.get(key)
        if resolver is None:
            return CustomCovariateResolver(key)
        return resolver

    def resolve(self, key: str, context: ResolutionContext) -> ProfileValue:
        value = self.get(key).resolve(context)
        logger.debug(f"Resolved covariate {key} = {value.canonical()}")
        return value


def resolve_profile(
    declaration: CovariateDeclaration,
    context: ResolutionContext,
    registry: ResolverRegistry | None = None,
) -> CovariateProfile:
    """Resolve every declared covariate, in declaration order.

    Args:
        declaration: Keys to resolve
        context: Observable environment
        registry: Resolvers to use; the standard registry for the declaration
            when omitted

    Returns:
        The resolved profile (empty for an empty declaration)

    """
    if declaration.is_empty:
        return CovariateProfile.empty()
    registry = registry or ResolverRegistry.standard(declaration)
    return CovariateProfile((key, registry.resolve(key, context)) for key in declaration.keys)
