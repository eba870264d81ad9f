"""
Exception hierarchy for the threshold Paillier scheme.

Every error is local and non-retryable: it is raised to the caller as soon
as the condition is detected. Input validation errors also derive from
ValueError so callers that only catch ValueError keep working.
"""


class PaillierError(Exception):
    """Base class for all errors raised by tpaillier."""


class DomainError(PaillierError, ValueError):
    """An integer argument lies outside the valid range for the operation."""


class KeyGenerationError(PaillierError, ValueError):
    """Invalid threshold parameters, or the prime search failed."""


class EntropyError(PaillierError, RuntimeError):
    """The operating system randomness source is unavailable."""


class InsufficientSharesError(PaillierError, ValueError):
    """Fewer than l filled shares were present at combine time."""


class ReconstructionError(PaillierError, ValueError):
    """Combining produced an out-of-range result (bad or malicious share)."""


class DuplicateShareError(PaillierError, ValueError):
    """A share slot that is already filled was written again."""
