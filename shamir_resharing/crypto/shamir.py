"""Shamir (t-of-n) secret sharing over F_p.

API
---
share(secret, t, n)           -> ShareSet with indices 1..n
recover(shares, threshold)    -> secret   (needs >= threshold shares)
interpolate_at(shares, x)     -> f(x) of the interpolated polynomial
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union, overload

from shamir_resharing.config import PRIME, SECURITY_BITS
from shamir_resharing.crypto import field
from shamir_resharing.crypto.polynomial import Polynomial, evaluate, random_polynomial
from shamir_resharing.crypto.random_source import RandomSource
from shamir_resharing.errors import DuplicateIndex, InsufficientShares, InvalidIndex, InvalidThreshold

logger = logging.getLogger(__name__)


class Share(NamedTuple):
    """One point ``(index, value)`` of a sharing polynomial."""

    index: int
    value: int


ShareLike = Union[Share, Tuple[int, int]]


def as_shares(points: Iterable[ShareLike], p: int) -> List[Share]:
    """Normalise *points* and check indices are nonzero and distinct mod p."""
    shares = [Share(field.reduce(x, p), field.reduce(y, p)) for x, y in points]
    seen = set()
    for s in shares:
        if s.index == 0:
            raise InvalidIndex("Share index 0 is reserved for the secret")
        if s.index in seen:
            raise DuplicateIndex(f"Duplicate share index {s.index}")
        seen.add(s.index)
    return shares


@dataclass(frozen=True)
class ShareSet:
    """Shares of one polynomial, together with its threshold and modulus.

    Slicing a ShareSet yields a ShareSet with the same threshold, so
    :func:`recover` can refuse subsets that are too small.
    """

    shares: Tuple[Share, ...]
    threshold: int
    modulus: int = PRIME

    def __post_init__(self) -> None:
        object.__setattr__(self, "shares", tuple(as_shares(self.shares, self.modulus)))

    def __len__(self) -> int:
        return len(self.shares)

    def __iter__(self) -> Iterator[Share]:
        return iter(self.shares)

    @overload
    def __getitem__(self, item: int) -> Share: ...

    @overload
    def __getitem__(self, item: slice) -> "ShareSet": ...

    def __getitem__(self, item):
        if isinstance(item, slice):
            return ShareSet(self.shares[item], self.threshold, self.modulus)
        return self.shares[item]

    @property
    def indices(self) -> List[int]:
        return [s.index for s in self.shares]

    def by_index(self, index: int) -> Share:
        for s in self.shares:
            if s.index == index:
                return s
        raise KeyError(index)

    def subset(self, indices: Iterable[int]) -> "ShareSet":
        """Return the shares with the given indices, in the order given."""
        return ShareSet(tuple(self.by_index(i) for i in indices), self.threshold, self.modulus)


def share_polynomial(poly: Polynomial, indices: Sequence[int], threshold: int) -> ShareSet:
    """Evaluate *poly* at each of *indices* (nonzero, distinct)."""
    return ShareSet(
        tuple(Share(x, evaluate(poly, x)) for x in indices),
        threshold,
        poly.modulus,
    )


def share(
    secret: int,
    t: int,
    n: int,
    p: int = PRIME,
    security_bits: int = SECURITY_BITS,
    rng: Optional[RandomSource] = None,
) -> ShareSet:
    """Split *secret* into *n* shares with threshold *t*.

    A random polynomial f of degree t-1 is chosen such that f(0) = secret.
    Shares are (i, f(i)) for i = 1 … n.
    """
    if t < 1 or t > n:
        raise InvalidThreshold(f"Invalid threshold: t={t}, n={n}")
    if n >= p:
        raise InvalidThreshold(f"Cannot issue n={n} distinct nonzero indices mod p={p}")
    logger.debug("sharing secret with t=%d n=%d", t, n)

    poly = random_polynomial(t - 1, security_bits, rng, p).with_constant(secret)
    return share_polynomial(poly, range(1, n + 1), t)


def lagrange_coefficient(x_j: int, xs: Sequence[int], at: int = 0, p: int = PRIME) -> int:
    """Return ``L_j(at) = Π_{m≠j} (at - x_m) / (x_j - x_m)`` over the points *xs*."""
    num = 1
    den = 1
    for x_m in xs:
        if x_m == x_j:
            continue
        x_m_neg = field.additive_inverse(x_m, p)
        num = field.mul(num, field.add(at, x_m_neg, p), p)   # (at - x_m)
        den = field.mul(den, field.add(x_j, x_m_neg, p), p)  # (x_j - x_m)
    return field.mul(num, field.multiplicative_inverse(den, p), p)


def interpolate_at(
    shares: Iterable[ShareLike],
    x: int,
    p: Optional[int] = None,
) -> int:
    """Evaluate at *x* the unique polynomial of degree < len(shares) through *shares*."""
    if p is None:
        p = getattr(shares, "modulus", PRIME)
    points = as_shares(shares, p)
    if not points:
        raise InsufficientShares("Need at least one share")
    xs = [s.index for s in points]
    result = 0
    for s in points:
        coeff = lagrange_coefficient(s.index, xs, x, p)
        result = field.add(result, field.mul(coeff, s.value, p), p)
    return result


def recover(
    shares: Iterable[ShareLike],
    threshold: Optional[int] = None,
    p: Optional[int] = None,
) -> int:
    """Reconstruct the secret from *shares* using Lagrange interpolation at x=0.

    *threshold* defaults to ``shares.threshold`` when *shares* is a
    :class:`ShareSet`.  With a known threshold, fewer shares raise
    :class:`InsufficientShares`.  With no threshold at all the call is
    unchecked: too few shares silently yield a wrong value.
    """
    if threshold is None:
        threshold = getattr(shares, "threshold", None)
    if p is None:
        p = getattr(shares, "modulus", PRIME)
    points = as_shares(shares, p)
    if not points:
        raise InsufficientShares("Need at least one share")
    if threshold is not None and len(points) < threshold:
        raise InsufficientShares(
            f"Need >= {threshold} shares to recover, got {len(points)}"
        )
    logger.debug("recovering from %d shares (indices %s)", len(points), [s.index for s in points])
    return interpolate_at(points, 0, p)
