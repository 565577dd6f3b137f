"""Error kinds raised by the sharing core.

All of them signal a violated caller contract; none is transient, so
nothing here is ever retried.
"""

from __future__ import annotations


class SecretSharingError(ValueError):
    """Base class for every error raised by shamir-resharing."""


class InvalidThreshold(SecretSharingError):
    """Threshold is zero or larger than the number of shares."""


class InsufficientShares(SecretSharingError):
    """Fewer shares than the threshold were supplied."""


class DuplicateIndex(SecretSharingError):
    """Two shares in one set carry the same index."""


class InvalidIndex(SecretSharingError):
    """A share index is congruent to 0, which is reserved for the secret."""


class NotInvertible(SecretSharingError, ZeroDivisionError):
    """Attempted multiplicative inverse of a value congruent to 0 mod p."""


class ModulusTooSmall(SecretSharingError):
    """The modulus leaves no headroom for the requested security bits."""


class InvalidSlotMapping(SecretSharingError):
    """A resharing slot map is not an injective map into 1..n_new."""


class ProtocolError(SecretSharingError):
    """A party received messages that do not match its resharing plan."""
