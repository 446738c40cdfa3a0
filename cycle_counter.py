"""
Online cycle counting for partial relations.

Every partial is an edge (2 large primes), a padded edge to the virtual
vertex 1 (1 large prime) or a hyperedge (3 large primes) of the partial
relation graph. A subset of partials whose odd-exponent large primes all
cancel is a cycle; each independent cycle yields one smooth relation.

The counter keeps a union-find forest over the large primes, so that adding
a partial costs near-constant time:

- vertex ids are dense, the prime of each vertex is kept in a parallel list
- the root of a component is its numerically smallest prime
- each component carries an "odd" flag: it holds the vertex 1 or a
  hyperedge with an odd number of primes

A new partial can only close a cycle if every vertex it touches already
exists and every touched component that is not odd is touched an even
number of times. For 1- and 2-large-prime partials this condition is exact
and the count matches the closed formula relations + components - vertices.
For 3-large-prime partials it is an upper bound; the difference to the
closed formula is reported as the correction count.
"""
import logging

from errors import CycleCountInconsistencyError, LargePrimePolicyError
from relations import Partial

logger = logging.getLogger(__name__)

# Large primes of a 1-large-prime partial are paired with this virtual vertex
VIRTUAL_VERTEX = 1


class CycleCounter:
    """Union-find based estimate of the independent cycles among partial relations."""

    def __init__(self, max_large_factors: int):
        if max_large_factors not in (1, 2, 3):
            raise LargePrimePolicyError(f"max_large_factors must be 1, 2 or 3, got {max_large_factors}")
        self.max_large_factors = max_large_factors
        self.initialize_for_n()

    def initialize_for_n(self) -> None:
        """Reset all state before factoring a new number."""
        # dict as insertion-ordered set
        self._relations: dict[Partial, None] = {}
        self._vertex_ids: dict[int, int] = {}
        self._vertex_primes: list[int] = []
        # Indexed by vertex id
        self._parent: list[int] = []
        self._odd: list[bool] = []
        self._component_count = 0
        self._cycle_count = 0

    def add_partial(self, partial: Partial) -> int:
        """
        Add a partial relation to the graph.

        Args:
            partial: The new partial relation

        Returns:
            Updated estimate of the number of independent cycles

        Raises:
            LargePrimePolicyError: if the partial has more odd-exponent large
                primes than this counter accepts
        """
        if partial in self._relations:
            logger.error("Found duplicate relation: %s", partial)
            return self._cycle_count

        large_factors = partial.large_factors_with_odd_exponent()
        if len(large_factors) > self.max_large_factors:
            raise LargePrimePolicyError(
                f"partial with large factors {large_factors} exceeds max_large_factors={self.max_large_factors}"
            )
        self._relations[partial] = None

        vertices = (VIRTUAL_VERTEX,) + large_factors if len(large_factors) == 1 else large_factors

        # Count how often each existing component is touched
        hits_per_root: dict[int, int] = {}
        has_new_prime = False
        for prime in vertices:
            vertex_id = self._vertex_ids.get(prime)
            if vertex_id is None:
                # A new vertex 1 does no harm, it starts an odd component
                has_new_prime = has_new_prime or prime != VIRTUAL_VERTEX
                continue
            root = self._find_root(vertex_id)
            hits_per_root[root] = hits_per_root.get(root, 0) + 1

        closes_cycle = not has_new_prime and all(
            hits % 2 == 0 or self._odd[root] for root, hits in hits_per_root.items()
        )

        # Insert new vertices, then merge all touched components
        roots = set()
        for prime in vertices:
            vertex_id = self._vertex_ids.get(prime)
            if vertex_id is None:
                vertex_id = self._add_vertex(prime)
            roots.add(self._find_root(vertex_id))
        target = min(roots, key=self._vertex_primes.__getitem__)
        for root in roots:
            if root != target:
                self._parent[root] = target
                self._odd[target] |= self._odd[root]
                self._component_count -= 1
        if len(vertices) % 2:
            self._odd[target] = True

        if closes_cycle:
            self._cycle_count += 1
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Added partial %s: vertices=%d, components=%d, cycles=%d",
                large_factors, self.get_vertex_count(), self._component_count, self._cycle_count,
            )
        return self._cycle_count

    def _add_vertex(self, prime: int) -> int:
        vertex_id = len(self._vertex_primes)
        self._parent.append(vertex_id)
        self._odd.append(prime == VIRTUAL_VERTEX)
        self._vertex_ids[prime] = vertex_id
        self._vertex_primes.append(prime)
        self._component_count += 1
        return vertex_id

    def _find_root(self, vertex_id: int) -> int:
        # Path halving
        parent = self._parent
        while parent[vertex_id] != vertex_id:
            parent[vertex_id] = parent[parent[vertex_id]]
            vertex_id = parent[vertex_id]
        return vertex_id

    def get_root(self, prime: int) -> int | None:
        """Smallest prime of the component holding prime, None if prime is not a vertex."""
        vertex_id = self._vertex_ids.get(prime)
        if vertex_id is None:
            return None
        return self._vertex_primes[self._find_root(vertex_id)]

    def get_partial_relations(self) -> dict[Partial, None]:
        """All distinct partials added so far, in insertion order."""
        return self._relations

    def get_partial_relations_count(self) -> int:
        return len(self._relations)

    def get_cycle_count(self) -> int:
        return self._cycle_count

    def get_vertex_count(self) -> int:
        return len(self._vertex_primes)

    def get_component_count(self) -> int:
        return self._component_count

    def get_correction_count(self) -> int:
        """Difference between the cycle estimate and relations + components - vertices."""
        return self._cycle_count - (len(self._relations) + self._component_count - len(self._vertex_primes))

    def clean_up(self) -> None:
        self.initialize_for_n()


class CycleCounter2LP(CycleCounter):
    """Exact cycle counter for partials with at most 2 large primes."""

    def __init__(self, max_large_factors: int = 2):
        if max_large_factors > 2:
            raise LargePrimePolicyError(f"{type(self).__name__} supports at most 2 large primes")
        super().__init__(max_large_factors)

    def add_partial(self, partial: Partial) -> int:
        cycle_count = super().add_partial(partial)
        corrections = self.get_correction_count()
        if corrections != 0:
            raise CycleCountInconsistencyError(
                f"2LP cycle count {cycle_count} deviates from graph formula by {corrections}"
            )
        return cycle_count


class CycleCounter3LP(CycleCounter):
    """Cycle estimate for partials with up to 3 large primes; never undercounts."""

    def __init__(self, max_large_factors: int = 3):
        super().__init__(max_large_factors)


def create_cycle_counter(max_large_factors: int) -> CycleCounter:
    """Pick the cycle counter matching the large prime variation."""
    if max_large_factors <= 2:
        return CycleCounter2LP(max_large_factors)
    return CycleCounter3LP(max_large_factors)
