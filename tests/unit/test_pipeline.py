"""Tests for the verification pipeline."""

from datetime import datetime, timedelta, timezone

import pytest

from probity.baseline.records import BaselineRecord
from probity.baseline.selection import NoCompatibleBaselineError
from probity.budget.tracker import Budget, BudgetExhaustedError
from probity.config.models import BudgetConfig, ProbityConfig
from probity.covariates.declaration import CovariateDeclaration
from probity.covariates.profile import CovariateProfile
from probity.covariates.resolvers import ResolutionContext
from probity.pipeline import VerificationPipeline
from probity.specification.models import (
    CostEnvelope,
    ExecutionSpecification,
    SpecificationValidationError,
    ThresholdOrigin,
)
from probity.statistics.aggregate import SampleOutcome
from probity.statistics.binomial import derive_threshold
from probity.statistics.explanation import INLINE_SOURCE
from probity.usecase import UseCaseConfig

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def use_case() -> UseCaseConfig:
    return UseCaseConfig(
        use_case_id="shopping.search",
        factors={"model": "gpt-4o", "temperature": 0.2},
        covariates=CovariateDeclaration.of("region"),
    )


@pytest.fixture
def context() -> ResolutionContext:
    return ResolutionContext(now=NOW, properties={"region": "EU"}, environment={})


@pytest.fixture
def pipeline() -> VerificationPipeline:
    return VerificationPipeline(now=lambda: NOW)


def make_baseline(
    use_case: UseCaseConfig,
    region: str = "EU",
    expires_in_days: int = 30,
    age: timedelta = timedelta(days=1),
) -> BaselineRecord:
    end = NOW - age
    return BaselineRecord(
        use_case_id=use_case.use_case_id,
        footprint=use_case.footprint().digest,
        covariates=CovariateProfile({"region": region}),
        samples=1000,
        successes=950,
        window_start=end - timedelta(hours=2),
        window_end=end,
        generated_at=end,
        expires_in_days=expires_in_days,
    )


def make_spec(**overrides: object) -> ExecutionSpecification:
    fields: dict[str, object] = {
        "spec_id": "shopping.search:v1",
        "use_case_id": "shopping.search",
        "approved_at": NOW - timedelta(days=2),
        "approved_by": "qa-lead",
        "min_pass_rate": 0.9,
        "threshold_origin": ThresholdOrigin.SLO,
    }
    fields.update(overrides)
    return ExecutionSpecification(**fields)  # type: ignore[arg-type]


def sample(session, passes: int, failures: int, tokens: int = 100) -> None:
    outcomes = [True] * passes + [False] * failures
    for passed in outcomes:
        if not session.admit(tokens):
            break
        session.record(SampleOutcome(passed=passed, tokens=tokens))


class TestEmpiricalRun:
    """Runs whose threshold is derived from the selected baseline."""

    def test_end_to_end(
        self,
        pipeline: VerificationPipeline,
        use_case: UseCaseConfig,
        context: ResolutionContext,
    ) -> None:
        """A prepared run samples against its baseline and concludes with a pass."""
        baseline = make_baseline(use_case)
        prepared = pipeline.prepare(use_case, context, [baseline])
        assert prepared.baseline is baseline
        assert prepared.threshold == pytest.approx(derive_threshold(1000, 950, 0.95))
        assert prepared.threshold_origin is ThresholdOrigin.EMPIRICAL
        assert prepared.profile["region"].canonical() == "EU"

        session = pipeline.open_session(prepared, planned_samples=100)
        sample(session, passes=97, failures=3)
        explanation = pipeline.conclude(prepared, session)

        assert explanation.passed
        assert explanation.test_name == "shopping.search"
        assert explanation.baseline.source_file == baseline.filename()
        assert explanation.baseline.has_data
        assert not any("inline threshold" in c for c in explanation.caveats)

    def test_region_matches_case_insensitively(
        self, pipeline: VerificationPipeline, use_case: UseCaseConfig
    ) -> None:
        """Region covariates compare without regard to case."""
        context = ResolutionContext(now=NOW, properties={"region": "eu"}, environment={})
        baseline = make_baseline(use_case)
        assert pipeline.prepare(use_case, context, [baseline]).baseline is baseline

    def test_missing_baseline_is_an_error(
        self,
        pipeline: VerificationPipeline,
        use_case: UseCaseConfig,
        context: ResolutionContext,
    ) -> None:
        """No baseline for the resolved region stops preparation."""
        other_region = make_baseline(use_case, region="US")
        with pytest.raises(NoCompatibleBaselineError, match="region"):
            pipeline.prepare(use_case, context, [other_region])

    def test_changed_factors_change_footprint(
        self,
        pipeline: VerificationPipeline,
        use_case: UseCaseConfig,
        context: ResolutionContext,
    ) -> None:
        """Changing a factor selects by a different footprint."""
        baseline = make_baseline(use_case)
        changed = use_case.model_copy(update={"factors": {"model": "gpt-4o-mini"}})
        with pytest.raises(NoCompatibleBaselineError, match="Available footprints"):
            pipeline.prepare(changed, context, [baseline])

    def test_expired_baseline_adds_caveat(
        self,
        pipeline: VerificationPipeline,
        use_case: UseCaseConfig,
        context: ResolutionContext,
    ) -> None:
        """An expired baseline still runs but is called out last."""
        baseline = make_baseline(use_case, expires_in_days=1, age=timedelta(days=3))
        prepared = pipeline.prepare(use_case, context, [baseline])
        assert prepared.expiration.is_expired

        session = pipeline.open_session(prepared, planned_samples=50)
        sample(session, passes=50, failures=0)
        explanation = pipeline.conclude(prepared, session)
        assert explanation.caveats[-1].startswith("Baseline expired")


class TestSpecificationRun:
    """Runs driven by an approved execution specification."""

    def test_threshold_from_specification(
        self,
        pipeline: VerificationPipeline,
        use_case: UseCaseConfig,
        context: ResolutionContext,
    ) -> None:
        """A specification's pass rate overrides the derived threshold."""
        baseline = make_baseline(use_case)
        prepared = pipeline.prepare(use_case, context, [baseline], specification=make_spec())
        assert prepared.threshold == 0.9
        assert prepared.threshold_origin is ThresholdOrigin.SLO
        assert prepared.baseline is baseline

    def test_without_baseline_uses_inline_reference(
        self,
        pipeline: VerificationPipeline,
        use_case: UseCaseConfig,
        context: ResolutionContext,
    ) -> None:
        """Specification runs without baselines report an inline threshold."""
        prepared = pipeline.prepare(use_case, context, [], specification=make_spec())
        assert prepared.baseline is None

        session = pipeline.open_session(prepared, planned_samples=100)
        sample(session, passes=95, failures=5)
        explanation = pipeline.conclude(prepared, session)
        assert explanation.test_name == "shopping.search:v1"
        assert explanation.baseline.source_file == INLINE_SOURCE
        assert any("inline threshold" in c for c in explanation.caveats)

    def test_unapproved_specification(
        self,
        pipeline: VerificationPipeline,
        use_case: UseCaseConfig,
        context: ResolutionContext,
    ) -> None:
        """Unapproved specifications are refused before sampling."""
        with pytest.raises(SpecificationValidationError, match="lacks approval metadata"):
            pipeline.prepare(use_case, context, [], specification=make_spec(approved_at=None))

    def test_cost_envelope_stops_partial_run(
        self, use_case: UseCaseConfig, context: ResolutionContext
    ) -> None:
        """The specification's token budget stops sampling when partial runs are allowed."""
        config = ProbityConfig(budget=BudgetConfig(exhaustion_behavior="EVALUATE_PARTIAL"))
        pipeline = VerificationPipeline(config, now=lambda: NOW)
        spec = make_spec(cost_envelope=CostEnvelope(total_token_budget=500))
        prepared = pipeline.prepare(use_case, context, [make_baseline(use_case)], spec)

        session = pipeline.open_session(prepared, planned_samples=100)
        sample(session, passes=100, failures=0)
        assert session.statistics().sample_count == 5

        explanation = pipeline.conclude(prepared, session)
        assert any(
            "Sampling stopped early (tokens budget 'shopping.search:v1' exhausted)" in c
            for c in explanation.caveats
        )

    def test_cost_envelope_fails_run_by_default(
        self,
        pipeline: VerificationPipeline,
        use_case: UseCaseConfig,
        context: ResolutionContext,
    ) -> None:
        """Exhausting the specification's budget fails the run by default."""
        spec = make_spec(cost_envelope=CostEnvelope(total_token_budget=500))
        prepared = pipeline.prepare(use_case, context, [make_baseline(use_case)], spec)
        session = pipeline.open_session(prepared, planned_samples=100)
        with pytest.raises(BudgetExhaustedError):
            sample(session, passes=100, failures=0)

    def test_shared_budget(
        self,
        pipeline: VerificationPipeline,
        use_case: UseCaseConfig,
        context: ResolutionContext,
    ) -> None:
        """A shared suite budget is charged alongside the test's own."""
        prepared = pipeline.prepare(use_case, context, [make_baseline(use_case)])
        shared = Budget(token_ceiling=300, scope="suite")
        session = pipeline.open_session(prepared, 10, shared_budgets=[shared])
        with pytest.raises(BudgetExhaustedError) as info:
            sample(session, passes=10, failures=0)
        assert info.value.scope == "suite"
        assert shared.consumed == 300
