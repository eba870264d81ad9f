"""
Auth servers for threshold decryption.

Each server holds one share s_i = f(i + 1) of the private exponent and
answers decryption requests with a partial decryption:

    c_i = c^(2 * delta * s_i) mod n^2

The factor 2*delta keeps every exponent integral once the combiner applies
its delta-scaled Lagrange coefficients. A server never releases s_i itself,
only c_i.
"""

import logging
from dataclasses import dataclass, field

from .shares import Share
from ..crypto.keys import PublicKey
from ..errors import DomainError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthServer:
    """
    One of the w decryption servers.

    Attributes:
        share: Secret share s_i (never serialized or logged)
        id: Public server index in [0, w)
    """

    share: int = field(repr=False)
    id: int

    def __post_init__(self):
        if self.id < 0:
            raise DomainError(f"Server id must be non-negative, got {self.id}")

    def share_decrypt(self, public_key: PublicKey, ciphertext: int) -> int:
        """
        Compute this server's partial decryption of a ciphertext.

        Args:
            public_key: Key the ciphertext was produced under
            ciphertext: Value in [0, n^2)

        Returns:
            c^(2 * delta * s_i) mod n^2

        Raises:
            DomainError: If the ciphertext or server id is out of range
        """
        if self.id >= public_key.w:
            raise DomainError(
                f"Server id {self.id} out of range for w={public_key.w}"
            )
        if not 0 <= ciphertext < public_key.n2:
            raise DomainError("Ciphertext must be in range [0, n^2-1]")

        logger.debug("Server %d computing partial decryption", self.id)
        exponent = 2 * public_key.delta * self.share
        return pow(ciphertext, exponent, public_key.n2)

    def partial_decrypt(self, public_key: PublicKey, ciphertext: int) -> Share:
        """Partial decryption tagged with this server's index."""
        return Share(index=self.id, value=self.share_decrypt(public_key, ciphertext))
