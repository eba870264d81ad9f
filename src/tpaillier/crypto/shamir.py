"""
Shamir secret sharing of the Paillier private exponent.

This module implements the dealer side of (l, w) threshold sharing where:
- The private exponent d is split into w shares, one per auth server
- Any l servers can jointly decrypt
- Fewer than l shares reveal nothing about d

Unlike sharing over a prime field GF(p), the polynomial lives in Z_{n*lambda},
a ring whose order is unknown to the servers. Division is not available
there, so evaluation uses only additions and multiplications; the Lagrange
denominators are cleared later by delta = w! in the combiner.

Mathematical Basis:
    1. d becomes the constant term (a_0) of a polynomial
    2. Polynomial: f(x) = a_0 + a_1*x + ... + a_{l-1}*x^{l-1}  mod n*lambda
    3. Server i (0-indexed) receives f(i + 1)

Reference:
    Shamir, A. (1979). "How to share a secret". Communications of the ACM.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .entropy import RandomSource, default_source
from .keys import PrivateKey
from ..core.server import AuthServer
from ..errors import DomainError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Polynomial:
    """
    A degree (l-1) sharing polynomial with the private exponent as constant term.

    Attributes:
        coefficients: [a_0, a_1, ..., a_{l-1}] where a_0 = d
        modulus: n * lambda(n)
    """

    coefficients: tuple[int, ...] = field(repr=False)
    modulus: int = field(repr=False)

    @classmethod
    def derive(
        cls, private_key: PrivateKey, random: Optional[RandomSource] = None
    ) -> "Polynomial":
        """
        Build a random sharing polynomial for a private key.

        Args:
            private_key: Key whose exponent d becomes coefficient 0
            random: Source for the l-1 higher coefficients

        Returns:
            Polynomial with exactly l coefficients
        """
        if random is None:
            random = default_source()

        coefficients = [private_key.d]

        # (l - 1) uniformly random coefficients in [0, n*lambda - 1]
        for _ in range(private_key.l - 1):
            coefficients.append(random.next_below(private_key.nm))

        logger.debug("Derived degree %d sharing polynomial", private_key.l - 1)
        return cls(coefficients=tuple(coefficients), modulus=private_key.nm)

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    def evaluate(self, x: int) -> int:
        """
        Evaluate the polynomial at point x using Horner's method.

        Args:
            x: Evaluation point (1-indexed server number, never 0)

        Returns:
            f(x) mod n*lambda
        """
        if x < 1:
            raise DomainError(f"Evaluation point must be positive, got {x}")

        result = 0
        for coeff in reversed(self.coefficients):
            result = (result * x + coeff) % self.modulus

        return result

    def share_for(self, index: int) -> int:
        """Return the secret share of the server with 0-indexed id `index`."""
        if index < 0:
            raise DomainError(f"Server index must be non-negative, got {index}")
        return self.evaluate(index + 1)

    def servers(self, w: int) -> list[AuthServer]:
        """
        Create all w auth servers, each holding its own share.

        Intended for a trusted dealer that hands each server to a separate
        party immediately afterwards.
        """
        logger.debug("Dealing shares to %d servers", w)
        return [AuthServer(share=self.share_for(i), id=i) for i in range(w)]
