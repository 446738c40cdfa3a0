"""
Benchmark suite for the congruence collector.

Benchmarks:
1. Cycle Counting: union-find estimate for 2- and 3-large-prime partials
2. Cycle Finding: singleton elimination plus residual GF(2) elimination
3. GF(2) Null Space: dense uint8 elimination with row history
4. Collector: relations streamed through collect_and_process_aq_pairs()

All inputs are synthetic: random partials over a pool of large primes, so
the number of cycles is controlled by the size of the pool.
"""

import math
import random
import statistics
import sys
import time
from functools import lru_cache
from typing import Callable

import numpy as np

from collector_config import CollectorConfig
from congruence_collector import CongruenceCollector
from cycle_counter import create_cycle_counter
from cycle_finder import CycleFinder
from factor_test import FactorTest01
from gf2_operations import find_null_vectors
from matrix_solver import MatrixSolverGauss
from relations import Partial, SmoothPerfect


# ============================================================================
# BENCHMARK UTILITIES
# ============================================================================

class BenchmarkResult:
    """Store benchmark results with statistics."""

    def __init__(self, name: str, times: list[float], operations: int = 1):
        self.name = name
        self.times = sorted(times)
        self.operations = operations

        self.min = min(times)
        self.max = max(times)
        self.mean = statistics.mean(times)
        self.median = statistics.median(times)
        self.stdev = statistics.stdev(times) if len(times) > 1 else 0

    def per_operation(self) -> float:
        """Mean time per operation in seconds."""
        return self.mean / self.operations

    def __str__(self):
        return (f"{self.name:40} | "
                f"Mean: {self.mean*1000:8.3f}ms | "
                f"Median: {self.median*1000:8.3f}ms | "
                f"StdDev: {self.stdev*1000:8.3f}ms | "
                f"Min: {self.min*1000:8.3f}ms | "
                f"Max: {self.max*1000:8.3f}ms")


def benchmark(func: Callable, *args, iterations: int = 5, operations: int = 1, **kwargs) -> BenchmarkResult:
    """
    Benchmark a function and return statistics.

    Args:
        func: Function to benchmark
        *args: Positional arguments to function
        iterations: Number of timed runs (after one warm-up run)
        operations: Operations per run, for per-operation figures
        **kwargs: Keyword arguments to function

    Returns:
        BenchmarkResult with timing statistics
    """
    times = []

    # Warm up
    func(*args, **kwargs)

    for _ in range(iterations):
        start = time.perf_counter()
        func(*args, **kwargs)
        times.append(time.perf_counter() - start)

    return BenchmarkResult(func.__name__, times, operations)


@lru_cache(maxsize=4)
def primes_up_to(limit: int) -> tuple[int, ...]:
    """Sieve of Eratosthenes."""
    sieve = np.ones(limit + 1, dtype=bool)
    sieve[:2] = False
    for i in range(2, math.isqrt(limit) + 1):
        if sieve[i]:
            sieve[i * i::i] = False
    return tuple(int(p) for p in np.flatnonzero(sieve))


def random_partials(
    count: int,
    max_large_factors: int,
    large_prime_pool: int = 2000,
    seed: int = 1,
) -> list[Partial]:
    """
    Generate distinct random partials.

    Args:
        count: Number of partials
        max_large_factors: 1..3 large primes per partial, drawn uniformly
        large_prime_pool: Number of distinct large primes to draw from
        seed: Random seed, for reproducible inputs

    Returns:
        List of partials with small factors over the first primes
    """
    rng = random.Random(seed)
    small_primes = primes_up_to(1000)[:50]
    primes = primes_up_to(200000)
    large_primes = [p for p in primes if p > 1000][:large_prime_pool]

    partials = []
    for a in range(1, count + 1):
        small = {p: 1 for p in rng.sample(small_primes, 4)}
        large = rng.sample(large_primes, rng.randint(1, max_large_factors))
        partials.append(Partial(a, small, {p: 1 for p in large}))
    return partials


# ============================================================================
# 1. CYCLE COUNTING BENCHMARKS
# ============================================================================

def _count_cycles(partials: list[Partial], max_large_factors: int) -> int:
    counter = create_cycle_counter(max_large_factors)
    for partial in partials:
        counter.add_partial(partial)
    return counter.get_cycle_count()


def benchmark_cycle_counting():
    """Benchmark the union-find cycle estimate."""
    print("\n" + "="*100)
    print("CYCLE COUNTING BENCHMARKS")
    print("="*100)

    for max_large_factors in (2, 3):
        for count in (1000, 10000):
            partials = random_partials(count, max_large_factors, large_prime_pool=count)
            result = benchmark(_count_cycles, partials, max_large_factors, iterations=5, operations=count)
            result.name = f"{max_large_factors}LP, {count:6} partials"
            print(result)
            print(f"  → {result.per_operation()*1e6:.2f}µs per partial, "
                  f"{_count_cycles(partials, max_large_factors)} cycles\n")


# ============================================================================
# 2. CYCLE FINDING BENCHMARKS
# ============================================================================

def benchmark_cycle_finding():
    """Benchmark materializing cycles as composite smooths."""
    print("\n" + "="*100)
    print("CYCLE FINDING BENCHMARKS")
    print("="*100)

    finder = CycleFinder(3)
    for max_large_factors in (2, 3):
        for count in (500, 2000):
            partials = random_partials(count, max_large_factors, large_prime_pool=count)
            result = benchmark(finder.find_independent_cycles, partials, iterations=3)
            result.name = f"{max_large_factors}LP, {count:6} partials"
            print(result)
            print(f"  → {len(finder.find_independent_cycles(partials))} cycles\n")


# ============================================================================
# 3. GF(2) NULL SPACE BENCHMARKS
# ============================================================================

def benchmark_null_space():
    """Benchmark dense GF(2) elimination with row history."""
    print("\n" + "="*100)
    print("GF(2) NULL SPACE BENCHMARKS")
    print("="*100)

    rng = np.random.default_rng(1)
    for rows, columns in ((200, 180), (1000, 950), (2000, 1950)):
        matrix = (rng.random((rows, columns)) < 0.05).astype(np.uint8)
        result = benchmark(find_null_vectors, matrix, iterations=3)
        result.name = f"{rows:5} x {columns:5} matrix"
        print(result)


# ============================================================================
# 4. COLLECTOR BENCHMARKS
# ============================================================================

def _collect(relations: list, config: CollectorConfig, n: int, prime_base_size: int) -> CongruenceCollector:
    collector = CongruenceCollector(config)
    collector.initialize(n, prime_base_size, MatrixSolverGauss(), FactorTest01(n))
    collector.collect_and_process_aq_pairs(relations)
    return collector


def benchmark_collector():
    """Benchmark streaming relations through the collector."""
    print("\n" + "="*100)
    print("COLLECTOR BENCHMARKS")
    print("="*100)

    # Relations are synthetic, so the solver is only run, never expected to succeed
    n = 1000003 * 1000033
    rng = random.Random(7)
    small_primes = primes_up_to(1000)[:50]
    smooths = [
        SmoothPerfect(a, {p: 1 for p in rng.sample(small_primes, 5)})
        for a in range(1, 301)
    ]
    for max_large_factors in (2, 3):
        partials = random_partials(3000, max_large_factors, large_prime_pool=3000, seed=max_large_factors)
        config = CollectorConfig(max_large_factors=max_large_factors)
        relations = smooths + partials
        result = benchmark(_collect, relations, config, n, len(small_primes) + 500,
                           iterations=3, operations=len(relations))
        result.name = f"{max_large_factors}LP, {len(relations):6} relations"
        print(result)
        report = _collect(relations, config, n, len(small_primes) + 500).get_report()
        print(f"  → {report.operation_details()}\n")


# ============================================================================
# MAIN BENCHMARK RUNNER
# ============================================================================

def run_all_benchmarks():
    """Run all benchmarks."""
    print("\n")
    print("╔" + "="*98 + "╗")
    print("║" + " "*20 + "CONGRUENCE COLLECTOR BENCHMARK SUITE" + " "*42 + "║")
    print("╚" + "="*98 + "╝")

    try:
        benchmark_cycle_counting()
        benchmark_cycle_finding()
        benchmark_null_space()
        benchmark_collector()

        print("\n" + "="*100)
        print("BENCHMARK COMPLETE")
        print("="*100 + "\n")

    except KeyboardInterrupt:
        print("\nBenchmark interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    run_all_benchmarks()
