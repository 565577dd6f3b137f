"""Random-bit sources consumed by the sharing core.

The core never owns a generator.  Each operation that needs randomness
takes an ``rng`` argument: any object exposing ``getrandbits(k)``.
``None`` stands for a fresh OS-backed CSPRNG.
"""

from __future__ import annotations

import random
import secrets
from typing import Optional, Protocol


class RandomSource(Protocol):
    """Capability: draw *k* uniformly random bits as a non-negative int."""

    def getrandbits(self, k: int) -> int:
        ...


def system_random() -> RandomSource:
    """Return a new CSPRNG-backed source (``os.urandom`` underneath)."""
    return secrets.SystemRandom()


def seeded(seed: int) -> RandomSource:
    """Return a deterministic source.  For tests only: NOT cryptographically secure."""
    return random.Random(seed)


def resolve(rng: Optional[RandomSource]) -> RandomSource:
    """Return *rng*, or a fresh system source when it is ``None``."""
    return system_random() if rng is None else rng
