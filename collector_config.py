"""
Configuration for the congruence collector.

Settings are collected in a dataclass and validated at construction time,
so a misconfigured collector fails before any relation is processed.
"""
from dataclasses import dataclass

from errors import LargePrimePolicyError


@dataclass
class CollectorConfig:
    """Congruence collector settings."""

    # Slack over the factor base size before the matrix solver is run,
    # and the amount the requirement grows after each failed solver run
    extra_congruences: int = 10
    # Large prime variation: 1, 2 or 3 large primes per partial
    max_large_factors: int = 2
    # None: use the partial solver only for 3-large-prime partials
    use_partial_solver: bool | None = None
    # Cross-check cycle estimates against the cycle finder after every partial
    verify_cycle_counts: bool = False

    def __post_init__(self):
        if self.extra_congruences < 0:
            raise ValueError(f"extra_congruences must be non-negative, got {self.extra_congruences}")
        if self.max_large_factors not in (1, 2, 3):
            raise LargePrimePolicyError(f"max_large_factors must be 1, 2 or 3, got {self.max_large_factors}")

    @property
    def partial_solver_enabled(self) -> bool:
        if self.use_partial_solver is None:
            return self.max_large_factors >= 3
        return self.use_partial_solver

