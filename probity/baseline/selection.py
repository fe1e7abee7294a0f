"""Baseline selection.

Given the footprint a test requires and the covariate profile resolved for
the current run, pick the baseline to compare against:

1. Keep candidates whose footprint equals the required footprint.
2. Keep those whose every covariate conforms to the test profile.
3. Pick the most recent (by window end, then generation instant).

When nothing survives, selection returns ``NoCompatibleBaseline`` describing
what was required and what exists. It never substitutes a non-matching
baseline.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from probity.config.models import ConfigurationError
from probity.covariates.matchers import ConformanceDetail, MatcherRegistry
from probity.covariates.profile import CovariateProfile

from .records import BaselineRecord

logger = logging.getLogger(__name__)


class NoCompatibleBaselineError(ConfigurationError):
    """Raised when a test requires a baseline that does not exist."""

    def __init__(self, failure: NoCompatibleBaseline) -> None:
        super().__init__(failure.message())
        self.failure = failure


@dataclass(frozen=True)
class BaselineSelected:
    """A successful selection.

    Attributes:
        record: The chosen baseline
        conformance: Per-key comparison for the chosen baseline
        candidates_considered: Candidates sharing the required footprint
        conforming_count: Candidates that conformed on every key
        ambiguous: True when another conforming candidate was equally recent

    """

    record: BaselineRecord
    conformance: tuple[ConformanceDetail, ...] = ()
    candidates_considered: int = 1
    conforming_count: int = 1
    ambiguous: bool = False

    ok = True

    def unwrap(self) -> BaselineRecord:
        return self.record


@dataclass(frozen=True)
class NoCompatibleBaseline:
    """A failed selection.

    Attributes:
        use_case_id: Use case the test belongs to
        expected_footprint: Footprint the test required
        available_footprints: Footprints of the baselines that do exist
        reason: Short reason code (``no_footprint_match`` or ``covariate_mismatch``)
        mismatches: Non-conforming keys of the closest candidate

    """

    use_case_id: str
    expected_footprint: str
    available_footprints: tuple[str, ...] = ()
    reason: str = "no_footprint_match"
    mismatches: tuple[ConformanceDetail, ...] = field(default_factory=tuple)

    ok = False

    def message(self) -> str:
        lines = [
            f"No baseline matches footprint '{self.expected_footprint}' "
            f"for use case '{self.use_case_id}'."
        ]
        if self.reason == "covariate_mismatch":
            lines.append(
                "Baselines with this footprint exist, but none conforms to the current covariates:"
            )
            lines.extend(f"  {detail.describe()}" for detail in self.mismatches)
        elif self.available_footprints:
            lines.append(f"Available footprints: {list(self.available_footprints)}.")
            lines.append("This may indicate factors or covariate declarations have changed.")
        else:
            lines.append("No baselines found for this use case.")
        lines.append("Run a MEASURE experiment to generate a compatible baseline.")
        return "\n".join(lines)

    def unwrap(self) -> BaselineRecord:
        raise NoCompatibleBaselineError(self)


SelectionResult = BaselineSelected | NoCompatibleBaseline


def _recency(record: BaselineRecord) -> tuple:
    return (record.window_end, record.generated_at)


class BaselineSelector:
    """Chooses a baseline for a test from a set of candidates."""

    def __init__(self, matchers: MatcherRegistry | None = None) -> None:
        self.matchers = matchers or MatcherRegistry.standard()

    def select(
        self,
        use_case_id: str,
        footprint: str,
        test_profile: CovariateProfile,
        candidates: Iterable[BaselineRecord],
    ) -> SelectionResult:
        """Select the baseline for a test.

        Args:
            use_case_id: Use case the test belongs to
            footprint: Required footprint digest
            test_profile: Covariate values resolved for this run
            candidates: Available baselines for the use case

        Returns:
            BaselineSelected or NoCompatibleBaseline

        """
        candidates = [c for c in candidates if c.use_case_id == use_case_id]
        same_footprint = [c for c in candidates if c.footprint == footprint]
        if not same_footprint:
            available = tuple(sorted({c.footprint for c in candidates}))
            logger.warning(
                f"No baseline for {use_case_id} with footprint {footprint}; "
                f"available: {list(available)}"
            )
            return NoCompatibleBaseline(
                use_case_id=use_case_id,
                expected_footprint=footprint,
                available_footprints=available,
            )

        evaluated = [
            (record, tuple(self.matchers.conformance(record.covariates, test_profile)))
            for record in same_footprint
        ]
        conforming = [(r, d) for r, d in evaluated if all(x.conforms for x in d)]

        if not conforming:
            closest_record, closest_details = max(
                evaluated,
                key=lambda item: (sum(x.conforms for x in item[1]), _recency(item[0])),
            )
            mismatches = tuple(d for d in closest_details if not d.conforms)
            logger.warning(
                f"No baseline for {use_case_id} conforms to covariates "
                f"{test_profile!r}; closest is {closest_record.filename()}"
            )
            return NoCompatibleBaseline(
                use_case_id=use_case_id,
                expected_footprint=footprint,
                available_footprints=(footprint,),
                reason="covariate_mismatch",
                mismatches=mismatches,
            )

        conforming.sort(key=lambda item: _recency(item[0]), reverse=True)
        record, details = conforming[0]
        ambiguous = len(conforming) > 1 and _recency(conforming[1][0]) == _recency(record)
        if ambiguous:
            logger.info(
                f"Multiple equally recent baselines conform for {use_case_id}; "
                f"using {record.filename()}"
            )
        logger.debug(f"Selected baseline {record.filename()} for {use_case_id}")
        return BaselineSelected(
            record=record,
            conformance=details,
            candidates_considered=len(same_footprint),
            conforming_count=len(conforming),
            ambiguous=ambiguous,
        )
