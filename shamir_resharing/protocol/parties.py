"""The computation each party performs during one resharing round.

Three roles take part:

- ``OldHolder``  – holds one old share; deals a mask and blinds its share.
- ``Combiner``   – interpolates the masked values and deals masked new shares.
- ``NewHolder``  – removes the masks from its masked new share.

A party only ever sees its own share, the messages addressed to it and
the public plan.  Nothing here talks to a network.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from shamir_resharing.crypto import field
from shamir_resharing.crypto.random_source import RandomSource, resolve
from shamir_resharing.crypto.resharing import (
    generate_mask,
    mask_share,
    recover_masked_secret,
    unmask,
)
from shamir_resharing.crypto.shamir import Share, ShareLike, share
from shamir_resharing.errors import ProtocolError
from shamir_resharing.protocol.messages import (
    MaskedShareMessage,
    MaskedValueMessage,
    ResharingPlan,
    SubShareMessage,
)

logger = logging.getLogger(__name__)


def _check_round(plan: ResharingPlan, round_id: str) -> None:
    if round_id != plan.round_id:
        raise ProtocolError(f"Message for round {round_id}, expected {plan.round_id}")


def collect_sub_shares(
    plan: ResharingPlan,
    received: Iterable[SubShareMessage],
    position: int,
) -> List[int]:
    """Check that *received* holds exactly one sub-share for *position* from
    every participating old holder, and return the values in plan order."""
    by_sender: Dict[int, int] = {}
    for msg in received:
        _check_round(plan, msg.round_id)
        if msg.recipient != position:
            raise ProtocolError(f"Sub-share for position {msg.recipient} delivered to {position}")
        if msg.sender in by_sender:
            raise ProtocolError(f"Two sub-shares from old holder {msg.sender}")
        if msg.sender not in plan.old_indices:
            raise ProtocolError(f"Sub-share from unknown old holder {msg.sender}")
        by_sender[msg.sender] = msg.value
    missing = [x for x in plan.old_indices if x not in by_sender]
    if missing:
        raise ProtocolError(f"Position {position} is missing sub-shares from {missing}")
    return [by_sender[x] for x in plan.old_indices]


class OldHolder:
    """Holder of one share under the old threshold."""

    def __init__(
        self,
        old_share: ShareLike,
        plan: ResharingPlan,
        rng: Optional[RandomSource] = None,
    ) -> None:
        index, value = old_share
        index = field.reduce(index, plan.modulus)
        self.plan = plan
        self.index = index
        self.slot = plan.slot_of(index)
        self._value = value
        self._rng = resolve(rng)

    def deal_mask(self) -> List[SubShareMessage]:
        """Step 1: share a fresh random mask, one sub-share per new position."""
        plan = self.plan
        mask = generate_mask(
            plan.n_new, plan.mask_threshold, plan.modulus, plan.security_bits, self._rng
        )
        logger.debug("old holder %d dealt mask to %d positions", self.index, len(mask))
        return [
            SubShareMessage(round_id=plan.round_id, sender=self.index, recipient=s.index, value=s.value)
            for s in mask
        ]

    def masked_value(self, received: Iterable[SubShareMessage]) -> MaskedValueMessage:
        """Step 2: blind the share with every sub-share addressed to this holder's slot."""
        plan = self.plan
        values = collect_sub_shares(plan, received, self.slot)
        masked = mask_share(
            (self.index, self._value), self.slot, plan.old_indices, plan.slots, values, plan.modulus
        )
        return MaskedValueMessage(
            round_id=plan.round_id, sender=self.index, slot=self.slot, value=masked.value
        )


class Combiner:
    """Party that turns masked values into masked new shares.

    It learns ``secret + Σ r_j`` and nothing else; that value only lives
    inside :meth:`combine`.
    """

    def __init__(self, plan: ResharingPlan, rng: Optional[RandomSource] = None) -> None:
        self.plan = plan
        self._rng = resolve(rng)

    def combine(self, masked_values: Sequence[MaskedValueMessage]) -> List[MaskedShareMessage]:
        """Steps 3 and 4: interpolate all masked values, then share the result."""
        plan = self.plan
        points = {}
        for msg in masked_values:
            _check_round(plan, msg.round_id)
            if msg.sender in points:
                raise ProtocolError(f"Two masked values from old holder {msg.sender}")
            if msg.slot != plan.slot_of(msg.sender):
                raise ProtocolError(
                    f"Old holder {msg.sender} reported slot {msg.slot}, plan says {plan.slot_of(msg.sender)}"
                )
            points[msg.sender] = Share(msg.slot, msg.value)
        missing = [x for x in plan.old_indices if x not in points]
        if missing:
            raise ProtocolError(f"Missing masked values from old holders {missing}")

        masked_secret = recover_masked_secret(points.values(), plan.modulus)
        masked_new = share(
            masked_secret, plan.t_new, plan.n_new, plan.modulus, plan.security_bits, self._rng
        )
        logger.debug("combiner dealt %d masked shares (t_new=%d)", len(masked_new), plan.t_new)
        return [
            MaskedShareMessage(round_id=plan.round_id, recipient=s.index, value=s.value)
            for s in masked_new
        ]


class NewHolder:
    """Holder of one share under the new threshold."""

    def __init__(self, position: int, plan: ResharingPlan) -> None:
        if position not in plan.new_positions:
            raise ProtocolError(f"Position {position} outside 1..{plan.n_new}")
        self.plan = plan
        self.position = position

    def unmask(
        self,
        masked_share: MaskedShareMessage,
        received: Iterable[SubShareMessage],
    ) -> Share:
        """Step 5: subtract every sub-share addressed to this position."""
        plan = self.plan
        _check_round(plan, masked_share.round_id)
        if masked_share.recipient != self.position:
            raise ProtocolError(
                f"Masked share for position {masked_share.recipient} delivered to {self.position}"
            )
        values = collect_sub_shares(plan, received, self.position)
        return unmask((self.position, masked_share.value), values, plan.modulus)
