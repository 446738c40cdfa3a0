"""
Shared fixtures: relations generated by a small quadratic residue search.

For A just above sqrt(N), Q = A^2 - N is trial-divided over the factor base.
Fully factored Q give smooth relations, a leftover prime (or two) below the
large prime bound give partials.
"""
import math
import random
from dataclasses import dataclass, field

import pytest

from relations import Partial, SmoothPerfect

N = 87463  # 149 * 587
FACTOR_BASE_BOUND = 200
LARGE_PRIME_BOUND = 3000
SEARCH_INTERVAL = 5000


def primes_below(limit: int) -> list[int]:
    sieve = [True] * limit
    sieve[0] = sieve[1] = False
    for i in range(2, math.isqrt(limit - 1) + 1):
        if sieve[i]:
            for j in range(i * i, limit, i):
                sieve[j] = False
    return [i for i in range(limit) if sieve[i]]


def factor_base(n: int, bound: int) -> list[int]:
    """Primes p <= bound with n a quadratic residue mod p."""
    return [p for p in primes_below(bound + 1) if p == 2 or pow(n % p, (p - 1) // 2, p) == 1]


@dataclass
class GeneratedRelations:
    n: int
    factor_base: list[int]
    smooths: list[SmoothPerfect] = field(default_factory=list)
    partials: list[Partial] = field(default_factory=list)

    def non_square_smooths(self) -> list[SmoothPerfect]:
        return [s for s in self.smooths if not s.is_exact_square()]

    def square_smooths(self) -> list[SmoothPerfect]:
        return [s for s in self.smooths if s.is_exact_square()]

    def relations_in_search_order(self, include_squares: bool = False) -> list:
        relations = self.partials + (self.smooths if include_squares else self.non_square_smooths())
        return sorted(relations, key=lambda r: r.a)


def generate_relations(n: int = N) -> GeneratedRelations:
    fb = factor_base(n, FACTOR_BASE_BOUND)
    large_primes = [p for p in primes_below(LARGE_PRIME_BOUND + 1) if p > FACTOR_BASE_BOUND]
    large_prime_set = set(large_primes)
    generated = GeneratedRelations(n, fb)

    start = math.isqrt(n) + 1
    for a in range(start, start + SEARCH_INTERVAL):
        rest = a * a - n
        small: dict[int, int] = {}
        for p in fb:
            while rest % p == 0:
                small[p] = small.get(p, 0) + 1
                rest //= p
        if rest == 1:
            generated.smooths.append(SmoothPerfect(a, small))
        elif rest in large_prime_set:
            generated.partials.append(Partial(a, small, {rest: 1}))
        elif rest <= LARGE_PRIME_BOUND ** 2:
            for p in large_primes:
                if p * p > rest:
                    break
                if rest % p == 0:
                    cofactor = rest // p
                    if cofactor != p and cofactor in large_prime_set:
                        generated.partials.append(Partial(a, small, {p: 1, cofactor: 1}))
                    break
    return generated


@pytest.fixture(scope="session")
def generated_relations() -> GeneratedRelations:
    return generate_relations()


def make_random_partials(
    count: int,
    max_large_factors: int,
    prime_pool: list[int],
    seed: int,
) -> list[Partial]:
    """Distinct random partials over a small pool of large primes, to get many cycles."""
    rng = random.Random(seed)
    small_primes = [2, 3, 5, 7, 11, 13]
    partials = []
    for a in range(1, count + 1):
        small = {p: 1 for p in rng.sample(small_primes, 2)}
        large = rng.sample(prime_pool, rng.randint(1, max_large_factors))
        partials.append(Partial(a, small, {p: 1 for p in large}))
    return partials


def gf2_rank(rows: list[tuple[int, ...]]) -> int:
    """Rank of sparse GF(2) rows, via bitmask elimination."""
    columns: dict[int, int] = {}
    basis: dict[int, int] = {}
    rank = 0
    for row in rows:
        mask = 0
        for column in row:
            mask ^= 1 << columns.setdefault(column, len(columns))
        while mask:
            top = mask.bit_length() - 1
            if top not in basis:
                basis[top] = mask
                rank += 1
                break
            mask ^= basis[top]
    return rank
