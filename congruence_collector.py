"""
Congruence collector: pools the relations found by the sieve until a
congruence of squares can be formed.

STATE MACHINE:
    COLLECTING -> SOLVING -> COLLECTING (solver failed, requirement raised)
                          -> DONE (factor found)

Smooth relations go straight into the smooth pool. Partial relations go to the
cycle counter; every independent cycle among them is worth one smooth
relation. Once pooled smooths plus partial-derived smooths reach the required
count, the cycle finder materializes the cycles as composite smooths and the
matrix solver is run over everything.

Two designs are supported:
- 2 large primes: the cycle counter is exact and drives the threshold directly
- 3 large primes: the counter only gives an upper bound, so every increase is
  confirmed by the partial solver on the related partials before it counts

A found factor is returned, never raised. It is stored write-once and all
further batches are ignored.
"""
import logging
import math
import threading
import time
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from collector_config import CollectorConfig
from cycle_counter import CycleCounter, create_cycle_counter
from cycle_finder import CycleFinder
from errors import CycleCountInconsistencyError
from factor_test import FactorTest
from matrix_solver import MatrixSolver
from partial_solver import PartialSolver, find_related_partials
from relations import AQPair, CompositeSmooth, Partial, Smooth, SmoothPerfect

logger = logging.getLogger(__name__)


class CollectorState(Enum):
    COLLECTING = "collecting"
    SOLVING = "solving"
    DONE = "done"


@dataclass
class CongruenceCollectorReport:
    """Snapshot of what the collector has found so far."""
    partial_count: int
    smooth_count: int
    perfect_smooth_count: int
    # Index i: partials with i+1 large primes
    partial_counts: tuple[int, int, int]
    # Index i: smooths from partials whose largest member has i+1 large primes
    smooth_from_partial_counts: tuple[int, int, int]
    # Bit length -> number of large primes of that size among collected partials
    big_factor_sizes: Counter = field(default_factory=Counter)

    def operation_details(self) -> str:
        smooth_from_partials = f"{self.smooth_from_partial_counts[0]} from 1-partials"
        if self.smooth_from_partial_counts[1] > 0:
            smooth_from_partials += f", {self.smooth_from_partial_counts[1]} involving 2-partials"
        if self.smooth_from_partial_counts[2] > 0:
            smooth_from_partials += f", {self.smooth_from_partial_counts[2]} involving 3-partials"
        partials = f"{self.partial_counts[0]} 1-partials"
        if self.partial_counts[1] > 0:
            partials += f", {self.partial_counts[1]} 2-partials"
        if self.partial_counts[2] > 0:
            partials += f", {self.partial_counts[2]} 3-partials"
        return (
            f"found {self.smooth_count} smooth congruences ({self.perfect_smooth_count} perfect, "
            f"{smooth_from_partials}) and {self.partial_count} partials ({partials})"
        )

    def big_factor_percentiles(self, percentiles: Iterable[int] = (80, 90, 95, 98, 99)) -> dict[int, int]:
        """
        Bit size of large primes needed to cover a percentile of all collected ones.

        Returns:
            Mapping percentile -> bit size
        """
        total = sum(self.big_factor_sizes.values())
        result: dict[int, int] = {}
        for percentile in percentiles:
            required = math.ceil(total * percentile / 100)
            count = 0
            for size in sorted(self.big_factor_sizes):
                count += self.big_factor_sizes[size]
                if count >= required:
                    result[percentile] = size
                    break
        return result


class CongruenceCollector:
    """
    Collects smooth and partial relations and runs the matrix solver when enough
    smooth-equivalents are available.

    collect_and_process_aq_pairs() is the only thread-safe entry point; all
    other methods rely on the caller for synchronization.
    """

    def __init__(self, config: CollectorConfig | None = None, **overrides):
        if config is None:
            config = CollectorConfig(**overrides)
        elif overrides:
            config = replace(config, **overrides)
        self.config = config
        self._lock = threading.RLock()
        self._initialized = False

    def initialize(self, n: int, prime_base_size: int, matrix_solver: MatrixSolver, factor_test: FactorTest) -> None:
        """
        Prepare for factoring a new number; resets all pools and statistics.

        Args:
            n: The number to factor
            prime_base_size: Number of factor base elements (matrix columns)
            matrix_solver: Solver run whenever enough smooth relations are pooled
            factor_test: Test for exact-square smooth relations
        """
        self.n = n
        self._matrix_solver = matrix_solver
        self._factor_test = factor_test
        matrix_solver.initialize(n, factor_test)

        # dict as insertion-ordered set
        self._smooth_pool: dict[Smooth, None] = {}
        self._cycle_counter: CycleCounter = create_cycle_counter(self.config.max_large_factors)
        self._cycle_finder = CycleFinder(self.config.max_large_factors)
        self._partial_solver = PartialSolver() if self.config.partial_solver_enabled else None
        self._large_factors_2_partials: dict[int, list[Partial]] = {}
        self._tested_squares: set[frozenset[AQPair]] = set()
        self._confirmed_cycle_count = 0
        self._square_cycle_count = 0

        self._required_smooth_congruence_count = prime_base_size + self.config.extra_congruences
        self._factor: int | None = None
        self._state = CollectorState.COLLECTING

        # statistics
        self._perfect_smooth_count = 0
        self._partial_counts = [0, 0, 0]
        self._smooth_from_partial_counts = [0, 0, 0]
        self._big_factor_sizes: Counter = Counter()
        self._solver_run_count = 0
        self._collect_duration = 0.0
        self._solver_duration = 0.0
        self._initialized = True
        logger.debug(
            "Initialized collector for N=%d: required=%d, max_large_factors=%d, partial solver=%s",
            n, self._required_smooth_congruence_count, self.config.max_large_factors,
            self._partial_solver is not None,
        )

    def _check_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("congruence collector has not been initialized")

    # ------------------------------------------------------------------
    # Collecting
    # ------------------------------------------------------------------

    def collect_and_process_aq_pairs(self, aq_pairs: Iterable[AQPair]) -> int | None:
        """
        Add a batch of relations and run the matrix solver whenever enough are pooled.

        Safe to call from several producer threads; they are serialized.

        Args:
            aq_pairs: New relations from the sieve

        Returns:
            A nontrivial factor of N if one is known, None otherwise
        """
        with self._lock:
            self._check_initialized()
            if self._factor is not None:
                return self._factor

            start = time.perf_counter()
            for aq_pair in aq_pairs:
                added = self.add(aq_pair)
                if self._factor is not None:
                    break
                if added and self.get_smooth_congruence_count() >= self._required_smooth_congruence_count:
                    self._collect_duration += time.perf_counter() - start
                    self._run_solver()
                    start = time.perf_counter()
                    if self._factor is not None:
                        break
            self._collect_duration += time.perf_counter() - start
            return self._factor

    def add(self, aq_pair: AQPair | Smooth) -> bool:
        """
        Add a single relation.

        Returns:
            True if the number of smooth-equivalents grew
        """
        self._check_initialized()
        if isinstance(aq_pair, Smooth):
            added = self._add_smooth(aq_pair)
            if added and isinstance(aq_pair, SmoothPerfect):
                self._perfect_smooth_count += 1
            return added
        if isinstance(aq_pair, Partial):
            return self._add_partial(aq_pair)
        raise TypeError(f"unsupported relation type {type(aq_pair).__name__}")

    def _add_smooth(self, smooth: Smooth) -> bool:
        if smooth.is_exact_square():
            self._test_square(smooth)
            return False
        if smooth in self._smooth_pool:
            logger.debug("Ignoring duplicate smooth relation %s", smooth)
            return False
        self._smooth_pool[smooth] = None
        return True

    def _test_square(self, smooth: Smooth) -> None:
        # Each distinct square is tested only once
        aq_pairs = smooth.aq_pairs()
        if aq_pairs in self._tested_squares:
            return
        self._tested_squares.add(aq_pairs)
        factor = self._factor_test.test_for_factor(aq_pairs)
        if factor is not None:
            self._record_factor(factor)
        elif logger.isEnabledFor(logging.DEBUG):
            logger.debug("Dropped improper square congruence %s", smooth)

    def _add_partial(self, partial: Partial) -> bool:
        is_new = partial not in self._cycle_counter.get_partial_relations()
        last_cycle_count = self._cycle_counter.get_cycle_count()
        cycle_count = self._cycle_counter.add_partial(partial)
        if not is_new:
            return False

        large_factors = partial.large_factors_with_odd_exponent()
        self._partial_counts[len(large_factors) - 1] += 1
        for prime in large_factors:
            self._big_factor_sizes[prime.bit_length()] += 1

        added = False
        if cycle_count > last_cycle_count:
            if self._partial_solver is None:
                added = True
            else:
                added = self._confirm_cycle(partial, large_factors)
        for prime in large_factors:
            self._large_factors_2_partials.setdefault(prime, []).append(partial)

        if self.config.verify_cycle_counts:
            self._verify_cycle_counts()
        return added

    def _confirm_cycle(self, partial: Partial, large_factors: tuple[int, ...]) -> bool:
        related = find_related_partials(large_factors, self._large_factors_2_partials)
        related[partial] = None
        composite = self._partial_solver.solve(related, required=partial)
        if composite is None:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Cycle estimate %d not confirmed among %d related partials",
                    self._cycle_counter.get_cycle_count(), len(related),
                )
            return False

        self._confirmed_cycle_count += 1
        if composite.is_exact_square():
            self._square_cycle_count += 1
            self._test_square(composite)
            return False
        return True

    def _smooths_from_partials(self) -> int:
        if self._partial_solver is None:
            return self._cycle_counter.get_cycle_count()
        return self._confirmed_cycle_count - self._square_cycle_count

    def _verify_cycle_counts(self) -> None:
        partials = self._cycle_counter.get_partial_relations()
        found = len(self._cycle_finder.find_independent_cycles(partials))
        estimate = self._cycle_counter.get_cycle_count()
        if estimate < found:
            raise CycleCountInconsistencyError(f"cycle estimate {estimate} is below {found} found cycles")
        if self._partial_solver is not None and self._confirmed_cycle_count != found:
            raise CycleCountInconsistencyError(
                f"{self._confirmed_cycle_count} confirmed cycles, but {found} found cycles"
            )
        if estimate > found:
            if self.config.max_large_factors <= 2:
                raise CycleCountInconsistencyError(f"2LP cycle estimate {estimate} exceeds {found} found cycles")
            logger.debug("Cycle estimate %d exceeds %d found cycles", estimate, found)

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def _run_solver(self) -> None:
        self._state = CollectorState.SOLVING
        self._solver_run_count += 1
        start = time.perf_counter()
        smooths = self.get_smooth_congruences()
        logger.info(
            "Solver run %d: %d smooth congruences (%d required), %d partials",
            self._solver_run_count, len(smooths), self._required_smooth_congruence_count,
            self._cycle_counter.get_partial_relations_count(),
        )
        if self._factor is None:
            factor = self._matrix_solver.solve(smooths)
            if factor is not None:
                self._record_factor(factor)
        self._solver_duration += time.perf_counter() - start

        if self._factor is None:
            self._required_smooth_congruence_count += self.config.extra_congruences
            self._state = CollectorState.COLLECTING
            logger.info(
                "Solver run %d found no factor, now requiring %d smooth congruences",
                self._solver_run_count, self._required_smooth_congruence_count,
            )

    def _record_factor(self, factor: int) -> None:
        if self._factor is not None:
            return
        self._factor = factor
        self._state = CollectorState.DONE
        logger.info("Found factor %d of N=%d after %d solver runs", factor, self.n, self._solver_run_count)

    def _materialize_composites(self) -> list[CompositeSmooth]:
        partials = self._cycle_counter.get_partial_relations()
        composites = []
        counts = [0, 0, 0]
        for composite in self._cycle_finder.find_independent_cycles(partials):
            counts[composite.max_large_factor_count() - 1] += 1
            if composite.is_exact_square():
                self._test_square(composite)
                if self._factor is not None:
                    break
                continue
            composites.append(composite)
        self._smooth_from_partial_counts = counts
        return composites

    def get_smooth_congruences(self) -> list[Smooth]:
        """Pooled smooth relations plus composites of all cycles among the partials."""
        self._check_initialized()
        return list(self._smooth_pool) + self._materialize_composites()

    # ------------------------------------------------------------------
    # Getters
    # ------------------------------------------------------------------

    def get_smooth_congruence_count(self) -> int:
        """Pooled smooth relations plus the smooths expected from partials."""
        return len(self._smooth_pool) + self._smooths_from_partials()

    def get_partial_congruence_count(self) -> int:
        return self._cycle_counter.get_partial_relations_count()

    def get_required_smooth_congruence_count(self) -> int:
        return self._required_smooth_congruence_count

    def get_factor(self) -> int | None:
        return self._factor

    def get_state(self) -> CollectorState:
        return self._state

    def get_cycle_counter(self) -> CycleCounter:
        return self._cycle_counter

    def get_solver_run_count(self) -> int:
        return self._solver_run_count

    def get_collect_duration(self) -> float:
        return self._collect_duration

    def get_solver_duration(self) -> float:
        return self._solver_duration

    def get_tested_null_vector_count(self) -> int:
        return self._matrix_solver.get_tested_null_vector_count()

    def get_report(self) -> CongruenceCollectorReport:
        return CongruenceCollectorReport(
            partial_count=self.get_partial_congruence_count(),
            smooth_count=self.get_smooth_congruence_count(),
            perfect_smooth_count=self._perfect_smooth_count,
            partial_counts=tuple(self._partial_counts),
            smooth_from_partial_counts=tuple(self._smooth_from_partial_counts),
            big_factor_sizes=Counter(self._big_factor_sizes),
        )

    def clean_up(self) -> None:
        """Release all pooled relations and graph state."""
        with self._lock:
            if not self._initialized:
                return
            self._smooth_pool = {}
            self._cycle_counter.clean_up()
            self._large_factors_2_partials = {}
            self._tested_squares = set()
            if self._partial_solver is not None:
                self._partial_solver.clean_up()
            self._matrix_solver.clean_up()
            self._initialized = False
