"""Run one resharing round with every party in this process.

The session plays postman: it hands each party the messages addressed
to it and nothing else.  Each party gets its own random source.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from shamir_resharing.config import PRIME, SECURITY_BITS
from shamir_resharing.crypto.random_source import RandomSource, system_random
from shamir_resharing.crypto.shamir import ShareLike, ShareSet, as_shares
from shamir_resharing.errors import ProtocolError
from shamir_resharing.protocol.messages import ResharingPlan, SubShareMessage
from shamir_resharing.protocol.parties import Combiner, NewHolder, OldHolder

logger = logging.getLogger(__name__)

RandomFactory = Callable[[], RandomSource]


class ResharingSession:
    """Drive the five resharing steps over in-process parties."""

    def __init__(self, plan: ResharingPlan, rng_factory: RandomFactory = system_random) -> None:
        self.plan = plan
        self._rng_factory = rng_factory

    @classmethod
    def for_shares(
        cls,
        old_shares: Iterable[ShareLike],
        t_old: int,
        t_new: int,
        n_new: int,
        p: Optional[int] = None,
        security_bits: int = SECURITY_BITS,
        slots: Optional[Sequence[int]] = None,
        rng_factory: RandomFactory = system_random,
    ) -> "ResharingSession":
        if p is None:
            p = getattr(old_shares, "modulus", PRIME)
        indices = [x for x, _ in old_shares]
        plan = ResharingPlan.create(indices, t_old, t_new, n_new, p, security_bits, slots)
        return cls(plan, rng_factory)

    def run(self, old_shares: Iterable[ShareLike]) -> ShareSet:
        """Reshare according to the plan and return the new shares.

        *old_shares* must contain the share of every participant named in
        the plan; shares of other holders are ignored.
        """
        plan = self.plan
        by_index = {s.index: s for s in as_shares(old_shares, plan.modulus)}
        missing = [x for x in plan.old_indices if x not in by_index]
        if missing:
            raise ProtocolError(f"No share for participants {missing} of round {plan.round_id}")
        logger.info(
            "resharing round %s: holders %s (t_old=%d) -> %d positions (t_new=%d)",
            plan.round_id, plan.old_indices, plan.t_old, plan.n_new, plan.t_new,
        )

        holders = [OldHolder(by_index[x], plan, self._rng_factory()) for x in plan.old_indices]

        # step 1: every participant deals a mask; sub-shares are routed by position
        inbox: Dict[int, List[SubShareMessage]] = defaultdict(list)
        for holder in holders:
            for msg in holder.deal_mask():
                inbox[msg.recipient].append(msg)

        # step 2: every participant blinds its share at its slot
        masked_values = [holder.masked_value(inbox[holder.slot]) for holder in holders]

        # steps 3 + 4: the combiner deals masked new shares
        masked_shares = Combiner(plan, self._rng_factory()).combine(masked_values)

        # step 5: every new holder removes the masks
        new_shares = [
            NewHolder(msg.recipient, plan).unmask(msg, inbox[msg.recipient]) for msg in masked_shares
        ]
        logger.debug("resharing round %s completed", plan.round_id)
        return ShareSet(tuple(new_shares), plan.t_new, plan.modulus)
