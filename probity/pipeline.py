"""Verification pipeline.

Ties the components together for one test run:

1. Resolve the covariate profile for the current context.
2. Select the baseline matching the use case's footprint and profile.
3. Evaluate the baseline's expiration.
4. Fix the threshold: the specification's minimum pass rate, or an
   empirical threshold derived from the baseline.
5. After sampling, compute the verdict with expiration warnings attached.

Example:
    pipeline = VerificationPipeline(ConfigLoader().load())
    prepared = pipeline.prepare(use_case, ResolutionContext.for_now(), baselines)
    session = pipeline.open_session(prepared, planned_samples=100)
    while session.admit(tokens=200):
        session.record(run_sample())
    explanation = pipeline.conclude(prepared, session)

"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from probity.baseline.expiration import ExpirationEvaluator, ExpirationStatus
from probity.baseline.records import BaselineRecord
from probity.baseline.selection import BaselineSelector, SelectionResult
from probity.budget.session import SamplingSession
from probity.budget.tracker import Budget, ExhaustionBehavior
from probity.config.models import ProbityConfig
from probity.covariates.matchers import MatcherRegistry
from probity.covariates.profile import CovariateProfile
from probity.covariates.resolvers import ResolutionContext, ResolverRegistry, resolve_profile
from probity.specification.models import ExecutionSpecification, TestIntent, ThresholdOrigin
from probity.statistics.binomial import derive_threshold
from probity.statistics.explanation import BaselineReference, StatisticalExplanation
from probity.statistics.verdict import VerdictEngine
from probity.usecase import UseCaseConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedTest:
    """Everything fixed before the first sample runs."""

    use_case: UseCaseConfig
    profile: CovariateProfile
    footprint: str
    selection: SelectionResult | None
    expiration: ExpirationStatus
    threshold: float
    threshold_origin: ThresholdOrigin
    intent: TestIntent
    contract_ref: str | None = None
    specification: ExecutionSpecification | None = None

    @property
    def baseline(self) -> BaselineRecord | None:
        if self.selection is None or not self.selection.ok:
            return None
        return self.selection.unwrap()

    def baseline_reference(self) -> BaselineReference | None:
        record = self.baseline
        if record is None:
            return None
        return BaselineReference(
            source_file=record.filename(),
            generated_at=record.generated_at,
            samples=record.samples,
            successes=record.successes,
        )


class VerificationPipeline:
    """Prepares and concludes probabilistic test runs."""

    def __init__(
        self,
        config: ProbityConfig | None = None,
        matchers: MatcherRegistry | None = None,
        resolvers: ResolverRegistry | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or ProbityConfig()
        self.selector = BaselineSelector(matchers or MatcherRegistry.standard(self.config))
        self.resolvers = resolvers
        self.expiration = ExpirationEvaluator.from_config(self.config.expiration)
        self.engine = VerdictEngine.from_config(self.config.statistics)
        self._now = now or (lambda: datetime.now(timezone.utc))

    def prepare(
        self,
        use_case: UseCaseConfig,
        context: ResolutionContext,
        candidates: Iterable[BaselineRecord],
        specification: ExecutionSpecification | None = None,
    ) -> PreparedTest:
        """Select a baseline and fix the threshold for a run.

        With a specification, its minimum pass rate is the threshold and a
        missing baseline only removes the empirical reference. Without one,
        the threshold is derived from the selected baseline, so a missing
        baseline is an error.

        Raises:
            NoCompatibleBaselineError: If no baseline is available and no
                specification supplies a threshold
            SpecificationValidationError: If the specification is not approved

        """
        registry = self.resolvers or ResolverRegistry.standard(use_case.covariates)
        profile = resolve_profile(use_case.covariates, context, registry)
        footprint = use_case.footprint().digest
        selection = self.selector.select(use_case.use_case_id, footprint, profile, candidates)

        if specification is not None:
            specification.validate()
            record = selection.unwrap() if selection.ok else None
            if record is None:
                logger.warning(
                    f"{use_case.use_case_id}: no baseline for specification "
                    f"{specification.spec_id}; threshold has no empirical reference"
                )
            policy = specification.expiration_policy() or (
                record.expiration_policy() if record else None
            )
            return PreparedTest(
                use_case=use_case,
                profile=profile,
                footprint=footprint,
                selection=selection,
                expiration=self.expiration.evaluate(policy, self._now()),
                threshold=specification.min_pass_rate,
                threshold_origin=specification.threshold_origin,
                intent=specification.intent,
                contract_ref=specification.contract_ref,
                specification=specification,
            )

        record = selection.unwrap()
        threshold = derive_threshold(
            record.samples, record.successes, self.config.statistics.confidence_level
        )
        logger.info(
            f"{use_case.use_case_id}: empirical threshold {threshold:.4f} "
            f"from baseline {record.filename()} ({record.successes}/{record.samples})"
        )
        return PreparedTest(
            use_case=use_case,
            profile=profile,
            footprint=footprint,
            selection=selection,
            expiration=self.expiration.evaluate(record.expiration_policy(), self._now()),
            threshold=threshold,
            threshold_origin=ThresholdOrigin.EMPIRICAL,
            intent=TestIntent.VERIFICATION,
        )

    def open_session(
        self,
        prepared: PreparedTest,
        planned_samples: int,
        shared_budgets: Sequence[Budget] = (),
        behavior: ExhaustionBehavior | None = None,
    ) -> SamplingSession:
        """Start a sampling session bounded by the specification's cost envelope."""
        behavior = behavior or ExhaustionBehavior(self.config.budget.exhaustion_behavior)
        budgets: list[Budget] = []
        spec = prepared.specification
        if spec is not None and spec.cost_envelope.total_token_budget:
            budgets.append(
                Budget.from_envelope(spec.cost_envelope, behavior, scope=spec.spec_id)
            )
        budgets.extend(shared_budgets)
        return SamplingSession(
            prepared.use_case.use_case_id, planned_samples, budgets, behavior=behavior
        )

    def conclude(self, prepared: PreparedTest, session: SamplingSession) -> StatisticalExplanation:
        """Compute the verdict for a finished session."""
        caveats = []
        if prepared.expiration.requires_warning:
            caveats.append(prepared.expiration.describe())

        spec = prepared.specification
        name = spec.spec_id if spec is not None else prepared.use_case.use_case_id
        return self.engine.evaluate(
            name,
            session.statistics(),
            prepared.threshold,
            baseline=prepared.baseline_reference(),
            threshold_origin=prepared.threshold_origin,
            contract_ref=prepared.contract_ref,
            intent=prepared.intent,
            planned_samples=session.planned_samples,
            early_termination=session.termination_reason,
            additional_caveats=caveats,
        )
