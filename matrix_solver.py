"""
Matrix solver: find square combinations of smooth relations over GF(2).

Each smooth relation is a matrix row over the factor base elements with odd
exponent. Every null vector combines smooth relations into a congruence of
squares, which is handed to the factor test.
"""
import logging
import time
from collections.abc import Collection
from typing import Protocol

from factor_test import FactorTest
from gf2_operations import build_column_index, build_gf2_matrix, find_null_vectors, remove_singletons
from relations import Smooth, xor_aq_pairs

logger = logging.getLogger(__name__)


class MatrixSolver(Protocol):
    def initialize(self, n: int, factor_test: FactorTest) -> None:
        ...

    def solve(self, smooths: Collection[Smooth]) -> int | None:
        """Return a nontrivial factor of N, or None if no null vector gave one."""
        ...

    def get_tested_null_vector_count(self) -> int:
        ...

    def clean_up(self) -> None:
        ...


class MatrixSolverGauss:
    """
    Structured Gaussian elimination over GF(2).

    Singleton rows are removed first, then the remaining rows are eliminated
    as a dense uint8 NumPy matrix with row history.
    """

    def __init__(self):
        self.n: int | None = None
        self.factor_test: FactorTest | None = None
        self.tested_null_vector_count = 0

    def initialize(self, n: int, factor_test: FactorTest) -> None:
        self.n = n
        self.factor_test = factor_test
        self.tested_null_vector_count = 0

    def solve(self, smooths: Collection[Smooth]) -> int | None:
        if self.factor_test is None:
            raise RuntimeError("matrix solver has not been initialized")
        start = time.perf_counter()
        smooths = list(smooths)
        rows = [smooth.matrix_elements() for smooth in smooths]

        keep = remove_singletons(rows)
        kept_rows = [rows[i] for i in keep]
        column_index = build_column_index(kept_rows)
        logger.debug(
            "Solving %d x %d matrix (%d rows before singleton removal)",
            len(keep), len(column_index), len(smooths),
        )
        matrix = build_gf2_matrix(kept_rows, column_index)

        for null_vector in find_null_vectors(matrix):
            aq_pairs = xor_aq_pairs(smooths[keep[index]] for index in null_vector)
            # Combinations of identical pairs cancel completely
            if not aq_pairs:
                continue
            self.tested_null_vector_count += 1
            factor = self.factor_test.test_for_factor(aq_pairs)
            if factor is not None:
                logger.debug("Null vector %d gave factor %d", self.tested_null_vector_count, factor)
                return factor

        logger.debug("No factor from %d null vectors in %.3fs", self.tested_null_vector_count, time.perf_counter() - start)
        return None

    def get_tested_null_vector_count(self) -> int:
        return self.tested_null_vector_count

    def clean_up(self) -> None:
        self.factor_test = None
        self.tested_null_vector_count = 0
