"""Exceptions raised by the congruence collector and its cycle machinery."""


class LargePrimePolicyError(ValueError):
    """A partial relation carries more large primes than the configured policy allows."""


class CycleCountInconsistencyError(AssertionError):
    """The cycle count estimate disagrees with the cycles that were actually found."""
