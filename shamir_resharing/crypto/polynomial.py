"""Polynomials over F_p.

A polynomial is an immutable tuple of coefficients ``[c_0, ..., c_d]``.
When used for sharing, ``c_0`` carries the secret.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from shamir_resharing.config import PRIME, SECURITY_BITS
from shamir_resharing.crypto import field
from shamir_resharing.crypto.random_source import RandomSource, resolve


@dataclass(frozen=True)
class Polynomial:
    """Coefficients ``c_0 .. c_degree`` over F_modulus."""

    coefficients: Tuple[int, ...]
    modulus: int = PRIME

    def __post_init__(self) -> None:
        if not self.coefficients:
            raise ValueError("A polynomial needs at least one coefficient")
        reduced = tuple(field.reduce(c, self.modulus) for c in self.coefficients)
        object.__setattr__(self, "coefficients", reduced)

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    @property
    def constant(self) -> int:
        return self.coefficients[0]

    def with_constant(self, value: int) -> "Polynomial":
        """Return a copy whose ``c_0`` is *value* (mod p)."""
        return Polynomial((value,) + self.coefficients[1:], self.modulus)

    def __call__(self, x: int) -> int:
        return evaluate(self, x)


def random_polynomial(
    degree: int,
    security_bits: int = SECURITY_BITS,
    rng: Optional[RandomSource] = None,
    p: int = PRIME,
) -> Polynomial:
    """Return a polynomial of the given degree with ``c_0 = 0``.

    ``c_0`` is a placeholder for the caller to overwrite; ``c_1 .. c_degree``
    are independent draws from :func:`field.random_field_element`.
    """
    if degree < 0:
        raise ValueError(f"Degree must be >= 0, got {degree}")
    rng = resolve(rng)
    coeffs = [0] + [
        field.random_field_element(security_bits, rng, p) for _ in range(degree)
    ]
    return Polynomial(tuple(coeffs), p)


def from_coefficients(coeffs: Sequence[int], p: int = PRIME) -> Polynomial:
    return Polynomial(tuple(coeffs), p)


def evaluate(poly: Polynomial, x: int) -> int:
    """Evaluate *poly* at *x* by accumulating ``c_i * x^i mod p``.

    Any field element is accepted for *x*, including 0.
    """
    p = poly.modulus
    x = field.reduce(x, p)
    result = 0
    power = 1
    for c in poly.coefficients:
        result = field.add(result, field.mul(c, power, p), p)
        power = field.mul(power, x, p)
    return result
