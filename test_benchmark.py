"""
Tests for the benchmark harness and its synthetic inputs.
"""

import pytest

from benchmark import BenchmarkResult, benchmark, primes_up_to, random_partials
from cycle_counter import create_cycle_counter


class TestBenchmarkResult:

    def test_statistics(self):
        result = BenchmarkResult("op", [0.3, 0.1, 0.2], operations=10)
        assert result.times == [0.1, 0.2, 0.3]
        assert result.min == 0.1
        assert result.max == 0.3
        assert result.median == 0.2
        assert result.mean == pytest.approx(0.2)
        assert result.per_operation() == pytest.approx(0.02)
        assert "op" in str(result)

    def test_single_run_has_no_stdev(self):
        assert BenchmarkResult("op", [0.1]).stdev == 0


class TestHarness:

    def test_warm_up_plus_iterations(self):
        calls = []
        result = benchmark(calls.append, 1, iterations=4)
        assert len(calls) == 5
        assert len(result.times) == 4
        assert result.name == "append"


class TestSyntheticInputs:

    def test_primes(self):
        assert primes_up_to(30) == (2, 3, 5, 7, 11, 13, 17, 19, 23, 29)

    def test_random_partials_are_reproducible(self):
        assert random_partials(50, 3, seed=5) == random_partials(50, 3, seed=5)

    @pytest.mark.parametrize("max_large_factors", [1, 2, 3])
    def test_random_partials_respect_policy(self, max_large_factors):
        partials = random_partials(200, max_large_factors, large_prime_pool=100)
        assert len(set(partials)) == 200
        assert all(1 <= len(p.large_factors_with_odd_exponent()) <= max_large_factors for p in partials)
        assert all(p > 1000 for partial in partials for p in partial.large_factors_with_odd_exponent())

    @pytest.mark.benchmark
    def test_cycle_counting_throughput(self):
        partials = random_partials(2000, 2, large_prime_pool=2000)

        def count_cycles():
            counter = create_cycle_counter(2)
            for partial in partials:
                counter.add_partial(partial)

        result = benchmark(count_cycles, iterations=2, operations=len(partials))
        assert result.per_operation() < 0.005
