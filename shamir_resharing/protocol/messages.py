"""Round plan and the messages parties hand to each other during resharing.

Delivery is the caller's concern; these models only fix what is sent.
Share values are carried as ints (pydantic serialises them losslessly).
"""

from __future__ import annotations

import uuid
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from shamir_resharing.config import PRIME, SECURITY_BITS
from shamir_resharing.crypto import field
from shamir_resharing.crypto.resharing import check_parameters, mask_threshold
from shamir_resharing.errors import DuplicateIndex, InvalidIndex, ProtocolError


class ResharingPlan(BaseModel):
    """Public parameters of one resharing round, known to every party.

    ``old_indices`` lists the participating holders only: the first
    ``t_old`` of the indices the round was created from.
    """

    model_config = ConfigDict(frozen=True)

    round_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    t_old: int
    t_new: int
    n_new: int
    modulus: int = PRIME
    security_bits: int = SECURITY_BITS
    old_indices: List[int]
    slots: List[int]

    @classmethod
    def create(
        cls,
        old_indices: Sequence[int],
        t_old: int,
        t_new: int,
        n_new: int,
        modulus: int = PRIME,
        security_bits: int = SECURITY_BITS,
        slots: Optional[Sequence[int]] = None,
        round_id: Optional[str] = None,
    ) -> "ResharingPlan":
        """Validate the round, pick its participants and build its plan."""
        old_indices = [field.reduce(x, modulus) for x in old_indices]
        if 0 in old_indices:
            raise InvalidIndex("Share index 0 is reserved for the secret")
        if len(set(old_indices)) != len(old_indices):
            raise DuplicateIndex(f"Duplicate old share index in {old_indices}")
        old_indices, slots = check_parameters(old_indices, t_old, t_new, n_new, slots)
        field.check_headroom(security_bits, modulus)
        extra = {} if round_id is None else {"round_id": round_id}
        return cls(
            t_old=t_old,
            t_new=t_new,
            n_new=n_new,
            modulus=modulus,
            security_bits=security_bits,
            old_indices=old_indices,
            slots=slots,
            **extra,
        )

    @property
    def mask_threshold(self) -> int:
        return mask_threshold(self.t_old, self.t_new)

    @property
    def new_positions(self) -> range:
        return range(1, self.n_new + 1)

    def slot_of(self, index: int) -> int:
        """New position played by the old holder with share *index*."""
        try:
            return self.slots[self.old_indices.index(index)]
        except ValueError:
            raise ProtocolError(f"Share index {index} is not part of round {self.round_id}") from None


class SubShareMessage(BaseModel):
    """Mask sub-share from old holder ``sender`` for new position ``recipient``."""

    round_id: str
    sender: int
    recipient: int
    value: int


class MaskedValueMessage(BaseModel):
    """An old holder's masked value, sent to the combiner."""

    round_id: str
    sender: int
    slot: int
    value: int


class MaskedShareMessage(BaseModel):
    """The combiner's masked share for new position ``recipient``."""

    round_id: str
    recipient: int
    value: int
