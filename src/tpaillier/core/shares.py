"""
Collection and combination of partial decryptions.

A ShareSet has one slot per auth server. Each slot is filled at most once;
writing a filled slot again is an error rather than an overwrite, so a
compromised party cannot replace an honest share after the fact.

Combination (Shoup / Damgard-Jurik):
    1. Pick l filled slots S
    2. For i in S, with x_i = i + 1:
           lambda_i = delta * prod_{j in S, j != i} x_j / (x_j - x_i)
       delta = w! makes every lambda_i an integer
    3. c' = prod_{i in S} c_i^(2 * lambda_i) mod n^2
         = c^(4 * delta^2 * d) = 1 + 4 * delta^2 * m * n  mod n^2
    4. m = L(c') * (4 * delta^2)^-1 mod n, where L(u) = (u - 1) / n
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..crypto.keys import PublicKey
from ..errors import (
    DomainError,
    DuplicateShareError,
    InsufficientSharesError,
    ReconstructionError,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Share:
    """
    A partial decryption tagged with the server that produced it.

    Attributes:
        index: Server index in [0, w)
        value: Partial decryption c^(2 * delta * s_i) mod n^2
    """

    index: int
    value: int


class ShareSet:
    """
    Fixed-capacity, index-addressed collection of partial decryptions.

    Slots start empty. set_share() fills a slot, clear() empties it again.
    """

    def __init__(self, size: int):
        """
        Initialize an empty set.

        Args:
            size: Number of slots, normally the server count w
        """
        if size < 1:
            raise DomainError("ShareSet size must be at least 1")

        self.size = size
        self._values: list[int] = [0] * size
        self._filled: list[bool] = [False] * size

    @classmethod
    def from_values(cls, values: list[Optional[int]]) -> "ShareSet":
        """
        Build a set from a list indexed by server id.

        None entries leave the corresponding slot empty.
        """
        share_set = cls(len(values))
        for index, value in enumerate(values):
            if value is not None:
                share_set.set_share(index, value)
        return share_set

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.size:
            raise DomainError(
                f"Share index {index} out of range [0, {self.size - 1}]"
            )

    def set_share(self, index: int, value: int) -> None:
        """
        Fill slot `index` with a partial decryption.

        Raises:
            DomainError: If index is out of range
            DuplicateShareError: If the slot is already filled
        """
        self._check_index(index)
        if self._filled[index]:
            raise DuplicateShareError(f"Share {index} already set")

        self._values[index] = value
        self._filled[index] = True

    def add(self, share: Share) -> None:
        """Fill the slot named by a Share."""
        self.set_share(share.index, share.value)

    def clear(self, index: int) -> None:
        """Empty slot `index` so it can be filled again."""
        self._check_index(index)
        self._values[index] = 0
        self._filled[index] = False

    def is_filled(self, index: int) -> bool:
        self._check_index(index)
        return self._filled[index]

    def get(self, index: int) -> Optional[int]:
        """Value in slot `index`, or None if the slot is empty."""
        self._check_index(index)
        if not self._filled[index]:
            return None
        return self._values[index]

    def filled_indices(self) -> list[int]:
        """Indices of all filled slots in ascending order."""
        return [i for i in range(self.size) if self._filled[i]]


def _lagrange_coefficient(index: int, indices: list[int], delta: int) -> int:
    """
    Integer Lagrange coefficient of server `index` at x = 0, scaled by delta.

    Uses 1-indexed points x = index + 1.
    """
    x_i = index + 1
    numerator = delta
    denominator = 1

    for j in indices:
        if j == index:
            continue
        x_j = j + 1
        numerator *= x_j
        denominator *= x_j - x_i

    # delta = w! is divisible by every product of point differences
    return numerator // denominator


def _reject(index, reason: str) -> ReconstructionError:
    """Log a rejected share at WARNING and build the error to raise."""
    logger.warning("Share from server %s rejected: %s", index, reason)
    return ReconstructionError(f"Share {index} {reason}")


def combine(public_key: PublicKey, share_set: ShareSet) -> int:
    """
    Reconstruct a plaintext from at least l partial decryptions.

    The l lowest filled indices are used; any further filled slots are
    ignored, which yields the same plaintext when all shares are honest.

    Args:
        public_key: Key the ciphertext was produced under
        share_set: Partial decryptions keyed by server index

    Returns:
        Plaintext in [0, n)

    Raises:
        InsufficientSharesError: If fewer than l slots are filled
        ReconstructionError: If the shares do not combine to a valid
            plaintext (bad or malicious share)
    """
    if share_set.size > public_key.w:
        raise DomainError(
            f"ShareSet has {share_set.size} slots but only {public_key.w} servers"
        )

    filled = share_set.filled_indices()
    if len(filled) < public_key.l:
        raise InsufficientSharesError(
            f"Need {public_key.l} shares, got {len(filled)}"
        )

    selected = filled[: public_key.l]
    logger.debug("Combining shares from servers %s", selected)

    n = public_key.n
    n2 = public_key.n2
    result = 1

    for index in selected:
        value = share_set.get(index)
        if not 0 < value < n2:
            raise _reject(index, "out of range")

        coeff = _lagrange_coefficient(index, selected, public_key.delta)
        term = pow(value, 2 * abs(coeff), n2)

        if coeff < 0:
            try:
                term = pow(term, -1, n2)
            except ValueError as e:
                raise _reject(index, "is not invertible") from e

        result = (result * term) % n2

    if result % n != 1:
        logger.warning("Shares from servers %s did not combine", selected)
        raise ReconstructionError("Combined shares are not of the form 1 + k*n")

    # Reduced mod n, so the result is always in [0, n); bad shares are
    # caught by the 1 + k*n check above
    return ((result - 1) // n) * pow(4 * public_key.delta**2, -1, n) % n
