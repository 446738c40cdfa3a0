"""
Partial solver: confirm a suspected cycle through a new partial relation.

When the cycle counter reports a new cycle for a 3-large-prime partial, the
collector gathers all partials connected to it through shared large primes and
solves that small GF(2) system over the large primes only. A null vector
involving the new partial is a cycle; its members form a CompositeSmooth.
"""
import logging
from collections.abc import Iterable

from gf2_operations import build_column_index, build_gf2_matrix, find_null_vectors, remove_singletons
from relations import CompositeSmooth, Partial

logger = logging.getLogger(__name__)


def find_related_partials(
    large_factors: Iterable[int],
    large_factors_2_partials: dict[int, list[Partial]],
) -> dict[Partial, None]:
    """
    Collect all partials reachable from the given large primes.

    Breadth-first search alternating between primes and the partials holding
    them, i.e. the connected component of the partial relation graph.

    Args:
        large_factors: Start primes, usually those of a new partial
        large_factors_2_partials: Index large prime -> partials holding it

    Returns:
        Related partials as an insertion-ordered dict
    """
    related: dict[Partial, None] = {}
    visited_primes: set[int] = set()
    pending = list(large_factors)
    while pending:
        prime = pending.pop()
        if prime in visited_primes:
            continue
        visited_primes.add(prime)
        for partial in large_factors_2_partials.get(prime, ()):
            if partial in related:
                continue
            related[partial] = None
            pending.extend(p for p in partial.large_factors_with_odd_exponent() if p not in visited_primes)
    return related


class PartialSolver:
    """Finds a smooth combination among a small set of related partials."""

    def __init__(self):
        self.solve_count = 0
        self.success_count = 0

    def solve(self, related_partials: Iterable[Partial], required: Partial | None = None) -> CompositeSmooth | None:
        """
        Solve the large prime matrix of the given partials.

        Args:
            related_partials: Partials connected through shared large primes
            required: If given, only combinations containing this partial are accepted

        Returns:
            CompositeSmooth of a null vector, or None if there is none
        """
        self.solve_count += 1
        partials = list(dict.fromkeys(related_partials))
        rows = [partial.large_factors_with_odd_exponent() for partial in partials]

        keep = remove_singletons(rows)
        survivors = [partials[i] for i in keep]
        if not survivors:
            return None
        required_index = None
        if required is not None:
            if required not in survivors:
                return None
            required_index = survivors.index(required)

        kept_rows = [rows[i] for i in keep]
        matrix = build_gf2_matrix(kept_rows, build_column_index(kept_rows))
        for null_vector in find_null_vectors(matrix):
            if required_index is not None and required_index not in null_vector:
                continue
            self.success_count += 1
            return CompositeSmooth(survivors[i] for i in null_vector)

        logger.debug("No cycle among %d related partials (%d after singleton removal)", len(partials), len(survivors))
        return None

    def clean_up(self) -> None:
        self.solve_count = 0
        self.success_count = 0
