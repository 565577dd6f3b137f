"""Field-modulus generation and checks (backed by sympy)."""

from __future__ import annotations

from typing import Optional

from sympy import isprime, nextprime

from shamir_resharing.config import SECURITY_BITS
from shamir_resharing.crypto import field
from shamir_resharing.crypto.random_source import RandomSource, resolve
from shamir_resharing.errors import ModulusTooSmall


def generate_prime(security_bits: int = SECURITY_BITS, rng: Optional[RandomSource] = None) -> int:
    """Return a random prime with at least ``security_bits + 1`` bits.

    A ``security_bits``-bit random value gets bit ``security_bits`` set,
    and the next prime above it is returned.
    """
    if security_bits < 1:
        raise ModulusTooSmall(f"security_bits must be positive, got {security_bits}")
    candidate = resolve(rng).getrandbits(security_bits) | (1 << security_bits)
    return int(nextprime(candidate))


def is_probable_prime(p: int) -> bool:
    return p >= 2 and bool(isprime(p))


def check_modulus(p: int, security_bits: int = SECURITY_BITS) -> None:
    """Raise :class:`ModulusTooSmall` unless *p* is a prime with enough headroom."""
    field.check_headroom(security_bits, p)
    if not is_probable_prime(p):
        raise ModulusTooSmall(f"Modulus {p} is not prime")
