"""
Cryptographically strong random integers for key generation and encryption.

RandomSource is a deterministic generator keyed from the operating system
CSPRNG:
    - Key: 256-bit AES key drawn from os.urandom
    - Stream: AES-256 in CTR mode over an all-zero plaintext
    - Integers: rejection sampling on the stream, so draws are uniform

The key is replaced on reseed() and automatically after RESEED_INTERVAL
bytes of output. Draws are serialized by an internal lock, so one source may
be shared by every key object and thread in a process.

Reference:
    NIST SP 800-90A: Recommendation for Random Number Generation Using
    Deterministic Random Bit Generators (CTR_DRBG)
"""

import logging
import math
import os
import threading
from typing import Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..errors import DomainError, EntropyError


logger = logging.getLogger(__name__)

# AES key size. 256 bits for maximum security.
KEY_SIZE = 32

# Initial counter block for CTR mode (one AES block).
NONCE_SIZE = 16

# Output bytes after which the stream is rekeyed from the OS.
RESEED_INTERVAL = 1 << 24


class RandomSource:
    """
    Uniform random integers backed by an AES-CTR keystream.

    Attributes:
        reseed_interval: Output bytes produced before an automatic reseed
    """

    def __init__(self, reseed_interval: int = RESEED_INTERVAL):
        if reseed_interval < 1:
            raise ValueError("Reseed interval must be at least 1 byte")

        self.reseed_interval = reseed_interval
        self._lock = threading.Lock()
        self._stream = None
        self._produced = 0
        self.reseed()

    def _rekey(self) -> None:
        """Install a fresh keystream. Caller must hold self._lock."""
        try:
            seed = os.urandom(KEY_SIZE + NONCE_SIZE)
        except (NotImplementedError, OSError) as e:
            raise EntropyError(f"OS randomness source unavailable: {e}") from e

        cipher = Cipher(
            algorithms.AES(seed[:KEY_SIZE]), modes.CTR(seed[KEY_SIZE:])
        )
        self._stream = cipher.encryptor()
        self._produced = 0

        logger.debug("Random source reseeded")

    def reseed(self) -> None:
        """
        Replace the keystream key with fresh OS entropy.

        Raises:
            EntropyError: If the OS randomness source is unavailable
        """
        with self._lock:
            self._rekey()

    def random_bytes(self, size: int) -> bytes:
        """Return size bytes of keystream output."""
        if size < 0:
            raise DomainError("Byte count must be non-negative")

        with self._lock:
            if self._produced + size > self.reseed_interval:
                self._rekey()
            self._produced += size
            return self._stream.update(bytes(size))

    def randbits(self, k: int) -> int:
        """Return a uniform integer with at most k bits."""
        if k < 0:
            raise DomainError("Bit count must be non-negative")
        if k == 0:
            return 0

        data = self.random_bytes((k + 7) // 8)
        return int.from_bytes(data, "big") >> (-k % 8)

    def next_below(self, bound: int) -> int:
        """
        Draw uniformly from [0, bound).

        Uses rejection sampling on (bound - 1).bit_length() bits, so each
        attempt succeeds with probability above one half.

        Raises:
            DomainError: If bound < 1
        """
        if bound < 1:
            raise DomainError(f"Bound must be positive, got {bound}")

        k = (bound - 1).bit_length()
        while True:
            value = self.randbits(k)
            if value < bound:
                return value

    def next_coprime(self, n: int) -> int:
        """Draw uniformly from the units of Z_n, i.e. r in [1, n) with gcd(r, n) = 1."""
        if n < 2:
            raise DomainError(f"Modulus must be at least 2, got {n}")

        while True:
            r = self.next_below(n)
            if r != 0 and math.gcd(r, n) == 1:
                return r


_default_source: Optional[RandomSource] = None
_default_lock = threading.Lock()


def default_source() -> RandomSource:
    """Return the process-wide RandomSource, creating it on first use."""
    global _default_source

    with _default_lock:
        if _default_source is None:
            _default_source = RandomSource()
        return _default_source
