"""Covariate matching.

Matching answers one question per key: does the value observed now conform
to the value recorded with a baseline? Matchers are looked up first by key
(for per-key overrides such as case-insensitive regions) and then by the
pair of value variants. A variant pair with no registered matcher never
conforms.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from .profile import CovariateProfile, ProfileValue
from .values import TimeWindowValue, is_not_set

if TYPE_CHECKING:
    from probity.config.models import ProbityConfig

logger = logging.getLogger(__name__)


class MatchResult(str, Enum):
    """Outcome of comparing one baseline value with one test value."""

    CONFORMS = "CONFORMS"
    DOES_NOT_CONFORM = "DOES_NOT_CONFORM"

    @property
    def conforms(self) -> bool:
        return self is MatchResult.CONFORMS

    @classmethod
    def of(cls, conforms: bool) -> MatchResult:
        return cls.CONFORMS if conforms else cls.DOES_NOT_CONFORM


class CovariateMatcher(Protocol):
    """Compares a baseline value with a test value."""

    def match(self, baseline_value: ProfileValue, test_value: ProfileValue) -> MatchResult: ...


class ExactStringMatcher:
    """Canonical-form equality. The not-set sentinel never conforms."""

    def __init__(self, case_sensitive: bool = True) -> None:
        self.case_sensitive = case_sensitive

    def match(self, baseline_value: ProfileValue, test_value: ProfileValue) -> MatchResult:
        if is_not_set(baseline_value) or is_not_set(test_value):
            return MatchResult.DOES_NOT_CONFORM
        expected = baseline_value.canonical()
        actual = test_value.canonical()
        if self.case_sensitive:
            return MatchResult.of(expected == actual)
        return MatchResult.of(expected.casefold() == actual.casefold())


class TimeWindowMatcher:
    """Conforms when the test time falls inside the baseline window.

    The baseline window is inclusive at both ends and may wrap past midnight.
    A test window that is not a point conforms only if it lies wholly inside
    the baseline window, following both windows through midnight. Windows in
    different zones never conform.
    """

    def match(self, baseline_value: ProfileValue, test_value: ProfileValue) -> MatchResult:
        if not isinstance(baseline_value, TimeWindowValue) or not isinstance(
            test_value, TimeWindowValue
        ):
            return MatchResult.DOES_NOT_CONFORM
        if baseline_value.zone != test_value.zone:
            logger.debug(
                f"Time window zones differ: baseline {baseline_value.zone}, "
                f"test {test_value.zone}"
            )
            return MatchResult.DOES_NOT_CONFORM
        if test_value.is_point:
            return MatchResult.of(baseline_value.contains(test_value.start))
        return MatchResult.of(baseline_value.covers(test_value))


def _kind(value: ProfileValue) -> str:
    return value.kind


@dataclass(frozen=True)
class ConformanceDetail:
    """Per-key comparison between a baseline profile and a test profile."""

    key: str
    baseline_value: ProfileValue | None
    test_value: ProfileValue | None
    result: MatchResult

    @property
    def conforms(self) -> bool:
        return self.result.conforms

    def describe(self) -> str:
        expected = self.baseline_value.canonical() if self.baseline_value else "<missing>"
        actual = self.test_value.canonical() if self.test_value else "<missing>"
        return f"{self.key}: baseline={expected!r} test={actual!r} -> {self.result.value}"


DEFAULT_VARIANT_MATCHERS: Mapping[tuple[str, str], CovariateMatcher] = {
    ("string", "string"): ExactStringMatcher(),
    ("time_window", "time_window"): TimeWindowMatcher(),
}


class MatcherRegistry:
    """Resolves the matcher for a covariate key and value variant pair.

    Registries are explicit values passed to the selector; there is no
    process-wide instance.
    """

    def __init__(
        self,
        key_matchers: Mapping[str, CovariateMatcher] | None = None,
        variant_matchers: Mapping[tuple[str, str], CovariateMatcher] | None = None,
    ) -> None:
        self._key_matchers = dict(key_matchers or {})
        self._variant_matchers = dict(
            DEFAULT_VARIANT_MATCHERS if variant_matchers is None else variant_matchers
        )

    @classmethod
    def standard(
        cls,
        config: ProbityConfig | None = None,
        case_insensitive_keys: Iterable[str] | None = None,
    ) -> MatcherRegistry:
        """Registry with the default variant table and case-insensitive keys.

        Args:
            config: Configuration supplying ``covariates.case_insensitive_keys``
            case_insensitive_keys: Explicit key list, taking precedence over config

        Returns:
            A new MatcherRegistry

        """
        if case_insensitive_keys is None:
            case_insensitive_keys = (
                config.covariates.case_insensitive_keys if config is not None else ["region"]
            )
        insensitive = ExactStringMatcher(case_sensitive=False)
        return cls(key_matchers={key: insensitive for key in case_insensitive_keys})

    def with_key_matcher(self, key: str, matcher: CovariateMatcher) -> MatcherRegistry:
        """Return a copy with a per-key matcher registered."""
        key_matchers = dict(self._key_matchers)
        key_matchers[key] = matcher
        return MatcherRegistry(key_matchers, self._variant_matchers)

    def match(
        self,
        key: str,
        baseline_value: ProfileValue | None,
        test_value: ProfileValue | None,
    ) -> MatchResult:
        """Compare one key's values. Missing values never conform."""
        if baseline_value is None or test_value is None:
            return MatchResult.DOES_NOT_CONFORM

        key_matcher = self._key_matchers.get(key)
        if key_matcher is not None and _kind(baseline_value) == _kind(test_value):
            return key_matcher.match(baseline_value, test_value)

        variant_matcher = self._variant_matchers.get((_kind(baseline_value), _kind(test_value)))
        if variant_matcher is None:
            return MatchResult.DOES_NOT_CONFORM
        return variant_matcher.match(baseline_value, test_value)

    def conformance(
        self, baseline_profile: CovariateProfile, test_profile: CovariateProfile
    ) -> list[ConformanceDetail]:
        """Compare every key of either profile, baseline order first.

        A key present on only one side does not conform.
        """
        keys = list(baseline_profile) + [k for k in test_profile if k not in baseline_profile]
        details = []
        for key in keys:
            baseline_value = baseline_profile.get(key)
            test_value = test_profile.get(key)
            details.append(
                ConformanceDetail(
                    key=key,
                    baseline_value=baseline_value,
                    test_value=test_value,
                    result=self.match(key, baseline_value, test_value),
                )
            )
        return details

    def conforms(self, baseline_profile: CovariateProfile, test_profile: CovariateProfile) -> bool:
        """True only when every declared key conforms."""
        return all(detail.conforms for detail in self.conformance(baseline_profile, test_profile))

