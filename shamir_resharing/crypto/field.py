"""Prime-field arithmetic F_p.

All values are Python ints reduced into [0, p).  Every function takes the
modulus as its last argument and defaults to ``config.PRIME``.
"""

from __future__ import annotations

from typing import Optional, Tuple

from shamir_resharing.config import PRIME, REDUCTION_MARGIN_BITS, SECURITY_BITS
from shamir_resharing.crypto.random_source import RandomSource, resolve
from shamir_resharing.errors import ModulusTooSmall, NotInvertible


def add(a: int, b: int, p: int = PRIME) -> int:
    """Field addition."""
    return (a + b) % p


def sub(a: int, b: int, p: int = PRIME) -> int:
    """Field subtraction."""
    return add(a, additive_inverse(b, p), p)


def mul(a: int, b: int, p: int = PRIME) -> int:
    """Field multiplication."""
    return (a * b) % p


def additive_inverse(x: int, p: int = PRIME) -> int:
    """Return ``(p - (x mod p)) mod p``."""
    return (p - (x % p)) % p


def _extended_gcd(a: int, b: int) -> Tuple[int, int, int]:
    """Return ``(g, s, t)`` with ``g = gcd(a, b) = s*a + t*b``."""
    old_r, r = a, b
    old_s, s = 1, 0
    old_t, t = 0, 1
    while r != 0:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_s, s = s, old_s - q * s
        old_t, t = t, old_t - q * t
    return old_r, old_s, old_t


def multiplicative_inverse(x: int, p: int = PRIME) -> int:
    """Return ``y`` with ``x * y == 1 (mod p)``, via extended GCD.

    Raises :class:`NotInvertible` when ``x`` is congruent to 0.
    """
    x = x % p
    if x == 1 or x == p - 1:
        return x  # self-inverse
    g, s, _ = _extended_gcd(x, p)
    if g != 1:
        raise NotInvertible(f"{x} has no inverse mod p (gcd={g})")
    return s % p


# Short names, as used throughout the crypto modules.
neg = additive_inverse
inv = multiplicative_inverse


def reduce(a: int, p: int = PRIME) -> int:
    """Reduce an integer into [0, p)."""
    return a % p


def check_headroom(security_bits: int, p: int = PRIME) -> None:
    """Raise :class:`ModulusTooSmall` unless ``p`` has ``security_bits + 1`` bits."""
    if p < 2:
        raise ModulusTooSmall(f"Modulus must be a prime >= 2, got {p}")
    if security_bits < 1:
        raise ModulusTooSmall(f"security_bits must be positive, got {security_bits}")
    if p.bit_length() < security_bits + 1:
        raise ModulusTooSmall(
            f"Modulus has {p.bit_length()} bits, need >= {security_bits + 1} "
            f"for security_bits={security_bits}"
        )


def random_field_element(
    security_bits: int = SECURITY_BITS,
    rng: Optional[RandomSource] = None,
    p: int = PRIME,
) -> int:
    """Return a random element of [0, p).

    Draws ``max(security_bits, bitlength(p)) + REDUCTION_MARGIN_BITS`` bits
    before reducing, which bounds the bias of the reduction by
    ``2^-REDUCTION_MARGIN_BITS``.
    """
    check_headroom(security_bits, p)
    bits = max(security_bits, p.bit_length()) + REDUCTION_MARGIN_BITS
    return resolve(rng).getrandbits(bits) % p
