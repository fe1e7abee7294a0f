"""Cost budgets.

A ``Budget`` caps the tokens and wall-clock time a test (or a group of
tests sharing one budget) may consume. Charges are check-and-increment
operations under a lock, so concurrent samples can never jointly overshoot
the ceiling.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from probity.specification.models import CostEnvelope

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class ExhaustionBehavior(str, Enum):
    """What happens to a test when its budget runs out."""

    FAIL = "FAIL"
    EVALUATE_PARTIAL = "EVALUATE_PARTIAL"


class BudgetResource(str, Enum):
    TOKENS = "TOKENS"
    TIME = "TIME"


class BudgetExhaustedError(Exception):
    """Raised when a FAIL-mode budget denies further samples."""

    def __init__(self, resource: BudgetResource, scope: str, message: str) -> None:
        super().__init__(message)
        self.resource = resource
        self.scope = scope


@dataclass(frozen=True)
class BudgetSnapshot:
    """Point-in-time view of a budget."""

    scope: str
    token_ceiling: int
    consumed_tokens: int
    time_ceiling_ms: int
    elapsed_ms: int
    exhausted_by: BudgetResource | None


class Budget:
    """Token and time ceiling shared by everything charging against it.

    A ceiling of 0 means unlimited.
    """

    def __init__(
        self,
        token_ceiling: int = 0,
        time_ceiling_ms: int = 0,
        behavior: ExhaustionBehavior = ExhaustionBehavior.FAIL,
        scope: str = "test",
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the budget.

        Args:
            token_ceiling: Maximum tokens, 0 for unlimited
            time_ceiling_ms: Maximum elapsed milliseconds, 0 for unlimited
            behavior: Behaviour of tests when the budget is exhausted
            scope: Name used in logs and errors
            clock: Monotonic clock in seconds

        Raises:
            ValueError: If a ceiling is negative

        """
        if token_ceiling < 0 or time_ceiling_ms < 0:
            raise ValueError("Budget ceilings must be non-negative")
        self.token_ceiling = token_ceiling
        self.time_ceiling_ms = time_ceiling_ms
        self.behavior = behavior
        self.scope = scope
        self._clock = clock
        self._started = clock()
        self._consumed = 0
        self._exhausted_by: BudgetResource | None = None
        self._lock = threading.Lock()

        logger.debug(
            f"Budget '{scope}' created: tokens={token_ceiling or 'unlimited'}, "
            f"time_ms={time_ceiling_ms or 'unlimited'}, behavior={behavior.value}"
        )

    @classmethod
    def from_envelope(
        cls,
        envelope: CostEnvelope,
        behavior: ExhaustionBehavior = ExhaustionBehavior.FAIL,
        scope: str = "test",
        clock: Clock = time.monotonic,
    ) -> Budget:
        """Budget enforcing an envelope's total token budget."""
        return cls(
            token_ceiling=envelope.total_token_budget,
            behavior=behavior,
            scope=scope,
            clock=clock,
        )

    def _elapsed_ms(self) -> int:
        return int((self._clock() - self._started) * 1000)

    def _time_exhausted(self) -> bool:
        return bool(self.time_ceiling_ms) and self._elapsed_ms() >= self.time_ceiling_ms

    def _mark_exhausted(self, resource: BudgetResource) -> None:
        if self._exhausted_by is None:
            self._exhausted_by = resource
            logger.warning(
                f"Budget '{self.scope}' exhausted ({resource.value}): "
                f"consumed {self._consumed} tokens in {self._elapsed_ms()}ms"
            )

    def charge(self, tokens: int) -> bool:
        """Reserve tokens if the budget allows it.

        Args:
            tokens: Tokens to reserve

        Returns:
            True if reserved; False if the reservation would exceed a ceiling

        """
        if tokens < 0:
            raise ValueError(f"Cannot charge a negative token count: {tokens}")
        with self._lock:
            if self._exhausted_by is not None:
                return False
            if self._time_exhausted():
                self._mark_exhausted(BudgetResource.TIME)
                return False
            if self.token_ceiling and self._consumed + tokens > self.token_ceiling:
                self._mark_exhausted(BudgetResource.TOKENS)
                return False
            self._consumed += tokens
            return True

    def consume(self, tokens: int) -> None:
        """Record tokens actually spent, beyond any reservation.

        Unlike ``charge`` this never refuses: the tokens were already spent.
        Reaching the ceiling exhausts the budget so that later charges are
        denied.
        """
        if tokens < 0:
            raise ValueError(f"Cannot consume a negative token count: {tokens}")
        with self._lock:
            self._consumed += tokens
            if self.token_ceiling and self._consumed >= self.token_ceiling:
                self._mark_exhausted(BudgetResource.TOKENS)

    def refund(self, tokens: int) -> None:
        """Return tokens reserved by a charge that was not used."""
        with self._lock:
            self._consumed = max(0, self._consumed - tokens)

    def check_time(self) -> bool:
        """True while the time ceiling has not been reached."""
        with self._lock:
            if self._exhausted_by is BudgetResource.TIME:
                return False
            if self._time_exhausted():
                self._mark_exhausted(BudgetResource.TIME)
                return False
            return True

    def remaining(self) -> int | None:
        """Tokens left, or None when unlimited."""
        if not self.token_ceiling:
            return None
        with self._lock:
            return max(0, self.token_ceiling - self._consumed)

    def remaining_time_ms(self) -> int | None:
        """Milliseconds left, or None when unlimited."""
        if not self.time_ceiling_ms:
            return None
        return max(0, self.time_ceiling_ms - self._elapsed_ms())

    @property
    def consumed(self) -> int:
        with self._lock:
            return self._consumed

    @property
    def exhausted_by(self) -> BudgetResource | None:
        with self._lock:
            return self._exhausted_by

    @property
    def is_exhausted(self) -> bool:
        return self.exhausted_by is not None

    def snapshot(self) -> BudgetSnapshot:
        with self._lock:
            return BudgetSnapshot(
                scope=self.scope,
                token_ceiling=self.token_ceiling,
                consumed_tokens=self._consumed,
                time_ceiling_ms=self.time_ceiling_ms,
                elapsed_ms=self._elapsed_ms(),
                exhausted_by=self._exhausted_by,
            )


class BudgetRegistry:
    """Holds one shared budget per scope id.

    Tests in the same group obtain the same ``Budget`` instance, so they
    observe a single consumption counter.
    """

    def __init__(self) -> None:
        self._budgets: dict[str, Budget] = {}
        self._lock = threading.Lock()

    def shared(self, scope_id: str, factory: Callable[[], Budget]) -> Budget:
        """Return the budget for a scope, creating it on first use."""
        with self._lock:
            budget = self._budgets.get(scope_id)
            if budget is None:
                budget = factory()
                self._budgets[scope_id] = budget
                logger.info(f"Created shared budget for scope '{scope_id}'")
            return budget

    def get(self, scope_id: str) -> Budget | None:
        with self._lock:
            return self._budgets.get(scope_id)

    def __contains__(self, scope_id: object) -> bool:
        with self._lock:
            return scope_id in self._budgets
