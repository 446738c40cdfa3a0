"""
Relation model for the congruence collector.

A relation (AQ-pair) encodes a congruence A^2 == Q (mod kN) together with the
factorization of Q:

- small factors: elements of the factor base (primes, and -1 for the sign of Q)
- large factors: primes above the factor base bound (partial relations only)

VARIANTS:
1. SmoothPerfect: Q factors completely over the factor base
2. Partial: 1-3 large primes are left over; only useful in combination
3. CompositeSmooth: a set of partials whose large primes all cancel out

Only exponent parities matter for the GF(2) linear system. The matrix row of a
smooth relation is the sorted tuple of factor base elements with odd exponent.
"""
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

FactorTuple = tuple[tuple[int, int], ...]


def _normalize_factors(factors: Mapping[int, int] | Iterable[tuple[int, int]]) -> FactorTuple:
    """
    Merge (factor, exponent) entries into a sorted tuple without zero exponents.

    Args:
        factors: Mapping factor -> exponent, or iterable of (factor, exponent) pairs

    Returns:
        Sorted tuple of (factor, exponent) pairs
    """
    items = factors.items() if isinstance(factors, Mapping) else factors
    merged: dict[int, int] = {}
    for factor, exponent in items:
        if exponent < 0:
            raise ValueError(f"negative exponent {exponent} for factor {factor}")
        merged[factor] = merged.get(factor, 0) + exponent
    return tuple(sorted((f, e) for f, e in merged.items() if e != 0))


def xor_aq_pairs(smooths: Iterable["Smooth"]) -> set["AQPair"]:
    """Combine the AQ-pairs of several smooth relations; pairs occurring twice cancel."""
    aq_pairs: set[AQPair] = set()
    for smooth in smooths:
        smooth.add_aq_pairs_via_xor(aq_pairs)
    return aq_pairs


@dataclass(frozen=True)
class AQPair:
    """
    A single relation A^2 == Q (mod kN) with the factor base part of Q.

    Relations are immutable; equality and hashing are structural.
    """
    a: int
    small_factors: FactorTuple = ()

    def __post_init__(self):
        object.__setattr__(self, "small_factors", _normalize_factors(self.small_factors))

    def matrix_elements(self) -> tuple[int, ...]:
        """Factor base elements with odd exponent, sorted."""
        return tuple(f for f, e in self.small_factors if e & 1)

    def q_factors(self) -> dict[int, int]:
        """Complete factorization of Q, small and large factors."""
        return dict(self.small_factors)


class Smooth(ABC):
    """A relation (or combination of relations) without unpaired large primes."""

    @abstractmethod
    def matrix_elements(self) -> tuple[int, ...]:
        """The GF(2) matrix row: factor base elements with odd total exponent."""

    @abstractmethod
    def aq_pairs(self) -> frozenset[AQPair]:
        """The AQ-pairs this smooth relation consists of."""

    def is_exact_square(self) -> bool:
        """
        Test if the Q of this smooth relation is an exact square.

        Large factors of a smooth relation always have even exponent,
        so only the matrix row needs to be checked.
        """
        return not self.matrix_elements()

    def add_aq_pairs_via_xor(self, target: set[AQPair]) -> None:
        """Add this relation's AQ-pairs to target via xor."""
        for aq_pair in self.aq_pairs():
            if aq_pair in target:
                target.remove(aq_pair)
            else:
                target.add(aq_pair)


@dataclass(frozen=True)
class SmoothPerfect(AQPair, Smooth):
    """A relation factoring completely over the factor base."""

    def aq_pairs(self) -> frozenset[AQPair]:
        return frozenset((self,))


@dataclass(frozen=True)
class Partial(AQPair):
    """
    A relation with 1-3 large primes left over after factoring over the factor base.

    Large primes with even exponent do not need a partner, so only the ones with
    odd exponent take part in cycle counting and finding.
    """
    large_factors: FactorTuple = ()

    def __post_init__(self):
        super().__post_init__()
        large_factors = _normalize_factors(self.large_factors)
        object.__setattr__(self, "large_factors", large_factors)
        odd_large_factors = tuple(p for p, e in large_factors if e & 1)
        if not odd_large_factors:
            raise ValueError(f"partial relation for A={self.a} has no large factor with odd exponent")
        object.__setattr__(self, "_odd_large_factors", odd_large_factors)

    def large_factors_with_odd_exponent(self) -> tuple[int, ...]:
        """Sorted large primes with odd exponent (1 to max_large_factors entries)."""
        return self._odd_large_factors

    def q_factors(self) -> dict[int, int]:
        factors = dict(self.small_factors)
        for prime, exponent in self.large_factors:
            factors[prime] = factors.get(prime, 0) + exponent
        return factors


class CompositeSmooth(Smooth):
    """
    A smooth relation assembled from partials whose large primes cancel out.

    The partials are kept by reference. Supplying the same partial twice cancels it,
    just like adding a row to itself over GF(2).
    """

    def __init__(self, partials: Iterable[Partial]):
        members: set[Partial] = set()
        for partial in partials:
            members ^= {partial}
        if not members:
            raise ValueError("a composite smooth relation needs at least one partial")

        large_exponents: dict[int, int] = {}
        row: set[int] = set()
        for partial in members:
            for prime in partial.large_factors_with_odd_exponent():
                large_exponents[prime] = large_exponents.get(prime, 0) + 1
            row ^= set(partial.matrix_elements())
        odd_primes = sorted(p for p, count in large_exponents.items() if count & 1)
        if odd_primes:
            raise ValueError(f"large factors {odd_primes} have odd combined exponent")

        self._partials = frozenset(members)
        self._matrix_elements = tuple(sorted(row))

    def partials(self) -> frozenset[Partial]:
        return self._partials

    def aq_pairs(self) -> frozenset[AQPair]:
        return self._partials

    def matrix_elements(self) -> tuple[int, ...]:
        return self._matrix_elements

    def max_large_factor_count(self) -> int:
        """Largest number of odd-exponent large primes among the member partials."""
        return max(len(p.large_factors_with_odd_exponent()) for p in self._partials)

    def __eq__(self, other):
        if not isinstance(other, CompositeSmooth):
            return NotImplemented
        return self._partials == other._partials

    def __hash__(self):
        return hash(self._partials)

    def __repr__(self):
        return f"CompositeSmooth(partials={len(self._partials)}, matrix_elements={self._matrix_elements})"
