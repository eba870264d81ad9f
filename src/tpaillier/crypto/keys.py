"""
Threshold Paillier key pair: generation, public operations and verification.

Key generation:
    1. Pick primes p, q of bits/2 each with the top two bits set, so that
       n = p*q has exactly `bits` bits
    2. Require gcd(n, (p-1)(q-1)) = 1 and gcd(w!, n) = 1
    3. lambda = lcm(p-1, q-1)
    4. d = lambda * (lambda^-1 mod n), so d = 0 mod lambda and d = 1 mod n

Public operations (all mod n^2, with g = n + 1):
    encrypt(m)      c = g^m * r^n
    reencrypt(c)    c' = c * r^n
    ep_add(c, m)    c' = c * g^m          -> m_c + m
    ee_add(c1, c2)  c' = c1 * c2          -> m_1 + m_2
    ep_mul(c, k)    c' = c^k              -> k * m_c

The private exponent d is only used by the dealer (to derive the sharing
polynomial) and by verify_key_pair(); decryption in normal operation goes
through the auth servers and the combiner.

Reference:
    Damgard, I., Jurik, M. (2001). "A Generalisation, a Simplification and
    Some Applications of Paillier's Probabilistic Public-Key System". PKC.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from sympy import nextprime

from .entropy import RandomSource, default_source
from ..errors import DomainError, KeyGenerationError


logger = logging.getLogger(__name__)

# Default modulus size. 2048 bits matches current factoring recommendations.
DEFAULT_BITS = 2048

# Smallest modulus for which two distinct primes can be found.
MIN_BITS = 16

# Candidate prime pairs tried before giving up.
MAX_PRIME_ATTEMPTS = 1000

# Encrypt/decrypt round trips performed by verify_key_pair().
VERIFY_ROUNDS = 2


@dataclass(frozen=True)
class PublicKey:
    """
    Public half of a threshold key pair.

    Attributes:
        n: Modulus p*q
        g: Generator, always n + 1
        n2: n^2, the ciphertext modulus
        bits: Bit length of n
        l: Number of servers required to decrypt
        w: Total number of servers
        delta: w!, clears the denominators of the Lagrange coefficients
    """

    n: int
    g: int
    n2: int
    bits: int
    l: int
    w: int
    delta: int

    @classmethod
    def from_modulus(cls, n: int, l: int, w: int) -> "PublicKey":
        """Build a public key from its distributed fields."""
        if n < 2:
            raise DomainError(f"Modulus must be at least 2, got {n}")
        if not 1 <= l <= w:
            raise DomainError(f"Require 1 <= l <= w, got l={l}, w={w}")

        return cls(
            n=n,
            g=n + 1,
            n2=n * n,
            bits=n.bit_length(),
            l=l,
            w=w,
            delta=math.factorial(w),
        )

    def _check_plaintext(self, m: int) -> None:
        if not 0 <= m < self.n:
            raise DomainError("Plaintext must be in range [0, n-1]")

    def _check_ciphertext(self, c: int) -> None:
        if not 0 <= c < self.n2:
            raise DomainError("Ciphertext must be in range [0, n^2-1]")

    def _g_pow(self, m: int) -> int:
        # g = n + 1, so g^m = 1 + m*n mod n^2
        return (1 + m * self.n) % self.n2

    def encrypt(self, m: int, random: Optional[RandomSource] = None) -> int:
        """
        Encrypt a plaintext: c = g^m * r^n mod n^2.

        Args:
            m: Plaintext in [0, n)
            random: Source for r (default: process-wide source)

        Returns:
            Ciphertext in [0, n^2)

        Raises:
            DomainError: If m is outside [0, n)
        """
        self._check_plaintext(m)

        if random is None:
            random = default_source()

        r = random.next_coprime(self.n)
        return (self._g_pow(m) * pow(r, self.n, self.n2)) % self.n2

    def reencrypt(self, c: int, random: Optional[RandomSource] = None) -> int:
        """
        Re-randomize a ciphertext without changing its plaintext.

        Multiplies by a fresh encryption of zero, r^n mod n^2, which makes
        the result unlinkable to the input.
        """
        self._check_ciphertext(c)

        if random is None:
            random = default_source()

        r = random.next_coprime(self.n)
        return (c * pow(r, self.n, self.n2)) % self.n2

    def ep_add(self, c: int, m: int) -> int:
        """Add a known plaintext m to the plaintext of c."""
        self._check_ciphertext(c)
        self._check_plaintext(m)
        return (c * self._g_pow(m)) % self.n2

    def ee_add(self, c1: int, c2: int) -> int:
        """Add the plaintexts of two ciphertexts."""
        self._check_ciphertext(c1)
        self._check_ciphertext(c2)
        return (c1 * c2) % self.n2

    def ep_mul(self, c: int, k: int) -> int:
        """
        Multiply the plaintext of c by the integer k.

        A negative k raises c to |k| and inverts the result, which fails
        with DomainError if c is not a unit mod n^2.
        """
        self._check_ciphertext(c)

        result = pow(c, abs(k), self.n2)
        if k < 0:
            try:
                result = pow(result, -1, self.n2)
            except ValueError as e:
                raise DomainError("Ciphertext is not invertible mod n^2") from e
        return result

    def share_combine(self, share_set) -> int:
        """Recover the plaintext from a ShareSet of partial decryptions."""
        from ..core.shares import combine

        return combine(self, share_set)


@dataclass(frozen=True)
class PrivateKey:
    """
    Private half of a threshold key pair.

    Attributes:
        n: Modulus p*q
        n2: n^2
        nm: n * lambda(n), the modulus of the sharing polynomial
        d: Master exponent, d = 0 mod lambda(n) and d = 1 mod n
        l: Number of servers required to decrypt
        w: Total number of servers
        delta: w!
    """

    n: int
    n2: int
    nm: int
    d: int = field(repr=False)
    l: int
    w: int
    delta: int


def _generate_prime(bits: int, random: RandomSource) -> Optional[int]:
    """
    Find a prime of exactly `bits` bits with the top two bits set.

    Returns None if the next prime after the candidate overflows the bit
    length; the caller retries with a new candidate.
    """
    candidate = random.randbits(bits) | (0b11 << (bits - 2)) | 1
    prime = int(nextprime(candidate - 1))

    if prime.bit_length() != bits:
        return None
    return prime


def generate_key_pair(
    bits: int = DEFAULT_BITS,
    l: int = 1,
    w: int = 1,
    random: Optional[RandomSource] = None,
) -> tuple[PublicKey, PrivateKey]:
    """
    Generate a threshold key pair.

    Args:
        bits: Bit length of the modulus n
        l: Number of servers required to decrypt (1 <= l <= w)
        w: Total number of servers
        random: Entropy source (default: process-wide source)

    Returns:
        Tuple of (PublicKey, PrivateKey)

    Raises:
        KeyGenerationError: If parameters are invalid or no suitable primes
            were found within MAX_PRIME_ATTEMPTS

    Example:
        >>> pk, vk = generate_key_pair(bits=512, l=3, w=5)
        >>> pk.n.bit_length()
        512
    """
    if l < 1:
        raise KeyGenerationError("Threshold l must be at least 1")
    if w < l:
        raise KeyGenerationError(f"Server count w={w} must be >= threshold l={l}")
    if bits < MIN_BITS:
        raise KeyGenerationError(f"Bit length must be at least {MIN_BITS}")

    p_bits = bits // 2
    q_bits = bits - p_bits

    # Both primes exceed 3 * 2^(p_bits - 2); w! is coprime to n only if w < p, q
    if w >= 3 << (p_bits - 2):
        raise KeyGenerationError(f"Bit length {bits} too small for w={w} servers")

    if random is None:
        random = default_source()

    delta = math.factorial(w)

    for attempt in range(1, MAX_PRIME_ATTEMPTS + 1):
        p = _generate_prime(p_bits, random)
        q = _generate_prime(q_bits, random)

        if p is None or q is None or p == q:
            continue

        n = p * q
        if math.gcd(n, (p - 1) * (q - 1)) != 1:
            continue
        if math.gcd(delta, n) != 1:
            continue

        logger.debug("Found %d-bit modulus after %d attempt(s)", bits, attempt)
        break
    else:
        raise KeyGenerationError(
            f"No suitable primes found after {MAX_PRIME_ATTEMPTS} attempts"
        )

    lam = math.lcm(p - 1, q - 1)
    d = lam * pow(lam, -1, n)

    public_key = PublicKey(
        n=n, g=n + 1, n2=n * n, bits=bits, l=l, w=w, delta=delta
    )
    private_key = PrivateKey(
        n=n, n2=n * n, nm=n * lam, d=d, l=l, w=w, delta=delta
    )

    logger.info("Generated %d-bit threshold key pair (l=%d, w=%d)", bits, l, w)
    return public_key, private_key


def _decrypt(private_key: PrivateKey, c: int) -> Optional[int]:
    """
    Decrypt with the full exponent: m = L(c^d mod n^2), L(u) = (u - 1) / n.

    Returns None if c^d is not 1 mod n, i.e. d does not match the key.
    """
    u = pow(c, private_key.d, private_key.n2)
    if u % private_key.n != 1:
        return None
    return ((u - 1) // private_key.n) % private_key.n


def verify_key_pair(
    public_key: PublicKey,
    private_key: PrivateKey,
    rounds: int = VERIFY_ROUNDS,
    random: Optional[RandomSource] = None,
) -> bool:
    """
    Check that a public and private key belong together.

    Compares the shared parameters, checks the structure of d, then runs
    `rounds` encrypt/decrypt round trips on random plaintexts. Diagnostic
    only: returns False instead of raising on mismatch.
    """
    if (public_key.n, public_key.n2) != (private_key.n, private_key.n2):
        return False
    if (public_key.l, public_key.w, public_key.delta) != (
        private_key.l,
        private_key.w,
        private_key.delta,
    ):
        return False
    if public_key.g != public_key.n + 1:
        return False

    n = private_key.n
    if private_key.nm % n != 0 or not 0 < private_key.d < private_key.nm:
        return False
    if private_key.d % n != 1:
        return False

    if random is None:
        random = default_source()

    for _ in range(max(rounds, 1)):
        m = random.next_below(n)
        c = public_key.encrypt(m, random)
        if _decrypt(private_key, c) != m:
            logger.debug("Key pair round trip failed")
            return False

    return True
