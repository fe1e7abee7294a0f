"""Covariate model, matching and resolution.

Covariates are the environmental factors (day, time, region, custom
settings) that condition the behaviour of a use case. This package defines
their values and declarations, resolves them from a context, and decides
whether a test context conforms to the context a baseline was measured in.
"""

from .declaration import (
    CovariateDeclaration,
    DayGroupDefinition,
    RegionGroupDefinition,
    StandardCovariate,
    TimePeriodDefinition,
    derive_day_group_label,
)
from .matchers import (
    ConformanceDetail,
    CovariateMatcher,
    ExactStringMatcher,
    MatcherRegistry,
    MatchResult,
    TimeWindowMatcher,
)
from .profile import CovariateProfile
from .resolvers import (
    CovariateResolver,
    CustomCovariateResolver,
    DayOfWeekResolver,
    RegionResolver,
    ResolutionContext,
    ResolverRegistry,
    TimePeriodResolver,
    TimeWindowResolver,
    TimezoneResolver,
    resolve_profile,
)
from .values import NOT_SET, CovariateValue, StringValue, TimeWindowValue, is_not_set

__all__ = [
    "NOT_SET",
    "ConformanceDetail",
    "CovariateDeclaration",
    "CovariateMatcher",
    "CovariateProfile",
    "CovariateResolver",
    "CovariateValue",
    "CustomCovariateResolver",
    "DayGroupDefinition",
    "DayOfWeekResolver",
    "ExactStringMatcher",
    "MatchResult",
    "MatcherRegistry",
    "RegionGroupDefinition",
    "RegionResolver",
    "ResolutionContext",
    "ResolverRegistry",
    "StandardCovariate",
    "StringValue",
    "TimePeriodDefinition",
    "TimePeriodResolver",
    "TimeWindowMatcher",
    "TimeWindowResolver",
    "TimeWindowValue",
    "TimezoneResolver",
    "derive_day_group_label",
    "is_not_set",
    "resolve_profile",
]
