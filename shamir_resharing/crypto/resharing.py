"""Threshold-changing resharing for Shamir shares.

Resharing converts ``m`` shares of a secret under threshold ``t_old`` into
``n_new`` fresh shares under threshold ``t_new`` **without
reconstructing the secret**.

Exactly ``t_old`` old holders take part: the first ``t_old`` of the
shares handed in.  Any further shares are left out of the round.

Protocol:

1. Every participating holder *j* draws a random ``r_j`` and shares it into
   ``n_new`` sub-shares (one per new position) with threshold
   ``min(t_old, t_new)``.
2. Old holder *j* plays new position ``slot_j``.  It rebases its share
   onto that slot and adds the sub-share at ``slot_j`` from every mask:
   ``z_j = c_j * y_j + Σ_i r_i(slot_j)``.
3. Interpolating all ``(slot_j, z_j)`` at 0 yields the masked secret
   ``s + Σ r_j``, which is blinded by the masks.
4. The masked secret is shared with threshold ``t_new`` into
   ``n_new`` masked shares.
5. New position *k* subtracts every mask's sub-share at *k*; the result
   is a share of ``s`` on a polynomial of degree ``t_new - 1``.

The rebasing factor ``c_j = L_j(0; old indices) / L_j(0; slots)`` makes
the interpolation over the slots weigh each old share exactly as the
interpolation over the old indices would, so any injective slot map is
valid.  ``c_j == 1`` whenever every slot equals its holder's index.

With exactly ``t_old`` participants the rebased values ``c_j * y_j`` are
themselves the values of a degree ``t_old - 1`` polynomial over the
slots, so no public weighting of the masked values cancels the masks
while keeping the secret.  More participants under a slot map other
than the identity would let the combiner isolate the secret.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from shamir_resharing.config import PRIME, SECURITY_BITS
from shamir_resharing.crypto import field
from shamir_resharing.crypto.random_source import RandomSource, resolve
from shamir_resharing.crypto.shamir import (
    Share,
    ShareLike,
    ShareSet,
    as_shares,
    lagrange_coefficient,
    recover,
    share,
)
from shamir_resharing.errors import InsufficientShares, InvalidSlotMapping, InvalidThreshold

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------
# Round parameters
# -----------------------------------------------------------------------

def mask_threshold(t_old: int, t_new: int) -> int:
    """Threshold of the mask sharings.

    Bounded by ``t_old`` so the masked values interpolate from the old
    holders, and by ``t_new`` so unmasking keeps degree ``t_new - 1``.
    """
    return min(t_old, t_new)


def default_slots(m: int) -> List[int]:
    """Participant number *j* (1-based, in share order) plays position *j*."""
    return list(range(1, m + 1))


def check_slots(slots: Sequence[int], m: int, n_new: int) -> List[int]:
    """Validate that *slots* maps each of the *m* participants to a distinct position in 1..n_new."""
    slots = list(slots)
    if len(slots) != m:
        raise InvalidSlotMapping(f"Need one slot per participant: {m} participants, {len(slots)} slots")
    for s in slots:
        if not 1 <= s <= n_new:
            raise InvalidSlotMapping(f"Slot {s} outside 1..{n_new}")
    if len(set(slots)) != len(slots):
        raise InvalidSlotMapping(f"Slots must be distinct, got {slots}")
    return slots


def check_parameters(
    old_indices: Sequence[int],
    t_old: int,
    t_new: int,
    n_new: int,
    slots: Optional[Sequence[int]] = None,
) -> Tuple[List[int], List[int]]:
    """Validate a resharing round.

    Returns the indices of the participating holders (the first *t_old*
    of *old_indices*) and the slot each of them plays.  *slots*, when
    given, is aligned with the participants.
    """
    m = len(old_indices)
    if t_old < 1:
        raise InvalidThreshold(f"Invalid old threshold: t_old={t_old}")
    if t_new < 1 or t_new > n_new:
        raise InvalidThreshold(f"Invalid threshold: t_new={t_new}, n_new={n_new}")
    if m < t_old:
        raise InsufficientShares(f"Need >= t_old={t_old} shares for resharing, got {m}")
    if t_old > n_new:
        raise InvalidSlotMapping(
            f"Cannot map {t_old} participants injectively into {n_new} new positions"
        )
    if slots is None:
        slots = default_slots(t_old)
    return list(old_indices[:t_old]), check_slots(slots, t_old, n_new)


# -----------------------------------------------------------------------
# Step 1: mask generation (one per old holder)
# -----------------------------------------------------------------------

def generate_mask(
    n_new: int,
    threshold: int,
    p: int = PRIME,
    security_bits: int = SECURITY_BITS,
    rng: Optional[RandomSource] = None,
) -> ShareSet:
    """Draw a random mask ``r`` and share it into *n_new* sub-shares."""
    rng = resolve(rng)
    r = field.random_field_element(security_bits, rng, p)
    return share(r, threshold, n_new, p, security_bits, rng)


# -----------------------------------------------------------------------
# Step 2: self-masking (each old holder, at its own slot)
# -----------------------------------------------------------------------

def rebase_factor(
    index: int,
    slot: int,
    old_indices: Sequence[int],
    slots: Sequence[int],
    p: int = PRIME,
) -> int:
    """Return ``L_index(0; old_indices) / L_slot(0; slots)``."""
    over_old = lagrange_coefficient(index, old_indices, 0, p)
    over_slots = lagrange_coefficient(slot, slots, 0, p)
    return field.mul(over_old, field.multiplicative_inverse(over_slots, p), p)


def mask_share(
    old_share: ShareLike,
    slot: int,
    old_indices: Sequence[int],
    slots: Sequence[int],
    sub_share_values: Iterable[int],
    p: int = PRIME,
) -> Share:
    """Blind one old share with the sub-shares every mask assigned to *slot*.

    Returns the masked value as a point at *slot*.
    """
    index, value = old_share
    masked = field.mul(value, rebase_factor(index, slot, old_indices, slots, p), p)
    for v in sub_share_values:
        masked = field.add(masked, v, p)
    return Share(slot, masked)


# -----------------------------------------------------------------------
# Step 3: temporary reconstruction of the masked secret
# -----------------------------------------------------------------------

def recover_masked_secret(masked_shares: Iterable[ShareLike], p: int = PRIME) -> int:
    """Interpolate *all* masked values at 0.

    The result is ``secret + Σ r_j``.  It must not be stored or logged.
    """
    return recover(masked_shares, p=p)


# -----------------------------------------------------------------------
# Step 5: unmasking (each new position)
# -----------------------------------------------------------------------

def unmask(masked_share: ShareLike, sub_share_values: Iterable[int], p: int = PRIME) -> Share:
    """Subtract every mask's sub-share at this position from *masked_share*."""
    index, value = masked_share
    for v in sub_share_values:
        value = field.add(value, field.additive_inverse(v, p), p)
    return Share(index, value)


def sub_shares_at(masks: Iterable[ShareSet], position: int) -> List[int]:
    """Values assigned to *position* by each mask."""
    return [mask.by_index(position).value for mask in masks]


# -----------------------------------------------------------------------
# Full round (all parties in one process)
# -----------------------------------------------------------------------

def reshare(
    old_shares: Iterable[ShareLike],
    t_old: int,
    t_new: int,
    n_new: int,
    p: Optional[int] = None,
    security_bits: int = SECURITY_BITS,
    rng: Optional[RandomSource] = None,
    slots: Optional[Sequence[int]] = None,
) -> ShareSet:
    """Turn *old_shares* (threshold *t_old*) into *n_new* shares with threshold *t_new*.

    Parameters
    ----------
    old_shares : shares of the secret, at least *t_old* of them.
    t_old : threshold of the old sharing.
    t_new, n_new : threshold and size of the new sharing.
    p : modulus; defaults to ``old_shares.modulus`` or ``config.PRIME``.
    rng : random source; every party draw comes from it.
    slots : new position played by each participant (the first *t_old*
        of *old_shares*), aligned with them.  Defaults to ``1..t_old``.

    Returns
    -------
    ShareSet
        Shares ``1..n_new`` of the same secret under threshold *t_new*.
    """
    if p is None:
        p = getattr(old_shares, "modulus", PRIME)
    old = as_shares(old_shares, p)
    old_indices, slots = check_parameters([s.index for s in old], t_old, t_new, n_new, slots)
    old = old[:t_old]
    field.check_headroom(security_bits, p)
    rng = resolve(rng)
    logger.debug(
        "resharing from holders %s (t_old=%d) into %d shares (t_new=%d), slots=%s",
        old_indices, t_old, n_new, t_new, slots,
    )

    # 1. each participating holder shares a fresh random mask
    k_mask = mask_threshold(t_old, t_new)
    masks = [generate_mask(n_new, k_mask, p, security_bits, rng) for _ in old]

    # 2. each old holder blinds its share at its slot
    masked = [
        mask_share(s, slot, old_indices, slots, sub_shares_at(masks, slot), p)
        for s, slot in zip(old, slots)
    ]

    # 3. + 4. reconstruct the masked secret and share it under the new threshold
    masked_new = share(recover_masked_secret(masked, p), t_new, n_new, p, security_bits, rng)

    # 5. every new position removes the masks
    new_shares = [unmask(s, sub_shares_at(masks, s.index), p) for s in masked_new]
    return ShareSet(tuple(new_shares), t_new, p)
