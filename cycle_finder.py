"""
Cycle finder: turn the partial relations collected so far into composite
smooth relations, one per independent cycle.

PHASES:
1. Singleton elimination: a partial with exactly one unresolved large prime p
   is folded into every other partial holding p. Partials record the
   combination folded into them as a chain; chains are combined by xor, so
   a partial folded in twice cancels. If the partner has no other unresolved
   prime, the two combinations form a cycle.
2. Residual elimination: partials still holding two or more unresolved primes
   (e.g. pure 2-large-prime loops) are solved over GF(2); each null vector is
   one more cycle.

Together both phases emit exactly as many composites as the partial relation
matrix has null space dimension, and the composites are linearly independent.
"""
import logging
from collections.abc import Iterable

from errors import LargePrimePolicyError
from gf2_operations import build_column_index, build_gf2_matrix, find_null_vectors, remove_singletons
from relations import CompositeSmooth, Partial

logger = logging.getLogger(__name__)


class CycleFinder:
    """Materializes independent cycles among partials as CompositeSmooth relations."""

    def __init__(self, max_large_factors: int = 3):
        self.max_large_factors = max_large_factors

    def find_independent_cycles(self, partials: Iterable[Partial]) -> list[CompositeSmooth]:
        """
        Find a maximal set of independent cycles.

        Args:
            partials: Partial relations; duplicates are ignored

        Returns:
            One CompositeSmooth per independent cycle
        """
        # Unresolved odd-exponent large primes per partial (insertion ordered)
        unresolved: dict[Partial, list[int]] = {}
        partials_by_prime: dict[int, list[Partial]] = {}
        chains: dict[Partial, set[Partial]] = {}
        for partial in partials:
            if partial in unresolved:
                continue
            large_factors = partial.large_factors_with_odd_exponent()
            if len(large_factors) > self.max_large_factors:
                raise LargePrimePolicyError(
                    f"partial with large factors {large_factors} exceeds max_large_factors={self.max_large_factors}"
                )
            unresolved[partial] = list(large_factors)
            chains[partial] = set()
            for prime in large_factors:
                partials_by_prime.setdefault(prime, []).append(partial)

        composites = self._eliminate_singletons(unresolved, partials_by_prime, chains)
        singleton_cycle_count = len(composites)
        composites.extend(self._solve_residual(unresolved, chains))

        logger.debug(
            "Found %d cycles among %d partials (%d by singleton elimination, %d residual)",
            len(composites), len(chains), singleton_cycle_count, len(composites) - singleton_cycle_count,
        )
        return composites

    def _eliminate_singletons(
        self,
        unresolved: dict[Partial, list[int]],
        partials_by_prime: dict[int, list[Partial]],
        chains: dict[Partial, set[Partial]],
    ) -> list[CompositeSmooth]:
        composites = []
        tables_changed = True
        while tables_changed:
            tables_changed = False
            for r0 in list(unresolved):
                r0_factors = unresolved.get(r0)
                if r0_factors is None or len(r0_factors) != 1:
                    continue

                prime = r0_factors[0]
                r0_combination = chains[r0] | {r0}
                for ri in partials_by_prime[prime]:
                    if ri is r0:
                        continue
                    ri_factors = unresolved.get(ri)
                    if ri_factors is None or prime not in ri_factors:
                        continue
                    if len(ri_factors) == 1:
                        # Both sides reduced to the same single prime
                        composites.append(CompositeSmooth(r0_combination ^ (chains[ri] | {ri})))
                        continue
                    chains[ri] ^= r0_combination
                    ri_factors.remove(prime)

                # prime is resolved everywhere
                del unresolved[r0]
                for partial in partials_by_prime[prime]:
                    factors = unresolved.get(partial)
                    if factors and prime in factors:
                        factors.remove(prime)
                tables_changed = True
        return composites

    def _solve_residual(
        self,
        unresolved: dict[Partial, list[int]],
        chains: dict[Partial, set[Partial]],
    ) -> list[CompositeSmooth]:
        residual = [(partial, factors) for partial, factors in unresolved.items() if factors]
        if not residual:
            return []

        rows = [factors for _, factors in residual]
        keep = remove_singletons(rows)
        if not keep:
            return []
        rows = [rows[i] for i in keep]
        matrix = build_gf2_matrix(rows, build_column_index(rows))

        composites = []
        for null_vector in find_null_vectors(matrix):
            members: set[Partial] = set()
            for index in null_vector:
                partial = residual[keep[index]][0]
                members ^= chains[partial] | {partial}
            composites.append(CompositeSmooth(members))
        return composites
