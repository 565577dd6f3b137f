"""Tests for the per-party resharing protocol and the in-process session."""

from collections import defaultdict
from itertools import combinations, count

import pytest

from shamir_resharing.crypto import shamir
from shamir_resharing.crypto.random_source import seeded
from shamir_resharing.errors import (
    DuplicateIndex,
    InsufficientShares,
    InvalidIndex,
    InvalidSlotMapping,
    InvalidThreshold,
    ProtocolError,
)
from shamir_resharing.protocol.messages import (
    MaskedShareMessage,
    MaskedValueMessage,
    ResharingPlan,
    SubShareMessage,
)
from shamir_resharing.protocol.parties import Combiner, NewHolder, OldHolder, collect_sub_shares
from shamir_resharing.protocol.session import ResharingSession


def _seeded_factory(start):
    seeds = count(start)
    return lambda: seeded(next(seeds))


@pytest.fixture
def round_setup():
    """A 3-of-5 sharing of 7 over p = 23, three holders resharing to 2-of-4."""
    shares = shamir.share(7, 3, 5, 23, 4, seeded(0))
    old = shares.subset([1, 3, 5])
    plan = ResharingPlan.create(old.indices, 3, 2, 4, modulus=23, security_bits=4)
    return {"old": old, "plan": plan}


# ======================================================================
# Plan
# ======================================================================


class TestPlan:
    def test_defaults(self, round_setup):
        plan = round_setup["plan"]
        assert plan.slots == [1, 2, 3]
        assert plan.mask_threshold == 2
        assert list(plan.new_positions) == [1, 2, 3, 4]
        assert len(plan.round_id) == 32

    def test_slot_of(self, round_setup):
        plan = round_setup["plan"]
        assert [plan.slot_of(x) for x in (1, 3, 5)] == [1, 2, 3]
        with pytest.raises(ProtocolError):
            plan.slot_of(2)

    def test_explicit_slots_and_round_id(self):
        plan = ResharingPlan.create([2, 4], 2, 2, 5, slots=[5, 1], round_id="r1")
        assert plan.round_id == "r1"
        assert plan.slot_of(2) == 5

    def test_only_t_old_holders_take_part(self):
        plan = ResharingPlan.create([4, 1, 5, 2], 2, 2, 3, slots=[3, 1])
        assert plan.old_indices == [4, 1]
        assert plan.slots == [3, 1]
        with pytest.raises(ProtocolError):
            plan.slot_of(5)

    def test_more_holders_than_new_positions(self):
        plan = ResharingPlan.create([1, 2, 3, 4, 5], 2, 2, 3)
        assert plan.old_indices == [1, 2]
        assert plan.slots == [1, 2]

    def test_serialises(self, round_setup):
        plan = round_setup["plan"]
        assert ResharingPlan.model_validate_json(plan.model_dump_json()) == plan

    @pytest.mark.parametrize(
        "indices,t_old,t_new,n_new,slots,error",
        [
            ([1, 2], 3, 2, 4, None, InsufficientShares),
            ([1, 2, 3], 3, 5, 4, None, InvalidThreshold),
            ([1, 2, 3], 0, 2, 4, None, InvalidThreshold),
            ([1, 2, 3], 3, 2, 4, [1, 1, 2], InvalidSlotMapping),
            ([1, 1, 3], 3, 2, 4, None, DuplicateIndex),
            ([0, 1, 3], 3, 2, 4, None, InvalidIndex),
        ],
    )
    def test_invalid_plans(self, indices, t_old, t_new, n_new, slots, error):
        with pytest.raises(error):
            ResharingPlan.create(indices, t_old, t_new, n_new, slots=slots)


# ======================================================================
# Parties driven by hand
# ======================================================================


class TestParties:
    def _run(self, old, plan):
        holders = [OldHolder(s, plan, seeded(10 + i)) for i, s in enumerate(old)]
        inbox = defaultdict(list)
        for h in holders:
            for msg in h.deal_mask():
                inbox[msg.recipient].append(msg)
        masked_values = [h.masked_value(inbox[h.slot]) for h in holders]
        masked_shares = Combiner(plan, seeded(99)).combine(masked_values)
        return [
            NewHolder(m.recipient, plan).unmask(m, inbox[m.recipient]) for m in masked_shares
        ]

    def test_manual_round(self, round_setup):
        new_shares = self._run(round_setup["old"], round_setup["plan"])
        assert [s.index for s in new_shares] == [1, 2, 3, 4]
        for pair in combinations(new_shares, 2):
            assert shamir.recover(list(pair), threshold=2, p=23) == 7

    def test_manual_round_with_permuted_slots(self, round_setup):
        old = round_setup["old"]
        plan = ResharingPlan.create(old.indices, 3, 2, 4, 23, 4, slots=[4, 2, 1])
        new_shares = self._run(old, plan)
        for pair in combinations(new_shares, 2):
            assert shamir.recover(list(pair), p=23) == 7

    def test_deal_mask_addresses_every_position(self, round_setup):
        plan = round_setup["plan"]
        holder = OldHolder(round_setup["old"][0], plan, seeded(1))
        msgs = holder.deal_mask()
        assert [m.recipient for m in msgs] == [1, 2, 3, 4]
        assert all(m.sender == 1 and m.round_id == plan.round_id for m in msgs)

    def test_holder_index_reduced_mod_p(self, round_setup):
        plan = round_setup["plan"]
        share = round_setup["old"][1]
        holder = OldHolder((share.index + 23, share.value), plan, seeded(1))
        assert holder.index == 3
        assert holder.slot == 2
        assert all(m.sender == 3 for m in holder.deal_mask())

    def test_holder_outside_plan(self, round_setup):
        with pytest.raises(ProtocolError):
            OldHolder((2, 5), round_setup["plan"])

    def test_missing_sub_share(self, round_setup):
        plan = round_setup["plan"]
        msgs = [SubShareMessage(round_id=plan.round_id, sender=x, recipient=1, value=1) for x in (1, 3)]
        with pytest.raises(ProtocolError, match="missing"):
            collect_sub_shares(plan, msgs, 1)

    def test_duplicate_sub_share(self, round_setup):
        plan = round_setup["plan"]
        msgs = [SubShareMessage(round_id=plan.round_id, sender=x, recipient=1, value=1) for x in (1, 1, 3, 5)]
        with pytest.raises(ProtocolError, match="Two sub-shares"):
            collect_sub_shares(plan, msgs, 1)

    def test_misdelivered_sub_share(self, round_setup):
        plan = round_setup["plan"]
        msgs = [SubShareMessage(round_id=plan.round_id, sender=x, recipient=2, value=1) for x in (1, 3, 5)]
        with pytest.raises(ProtocolError):
            collect_sub_shares(plan, msgs, 1)

    def test_wrong_round(self, round_setup):
        plan = round_setup["plan"]
        msgs = [SubShareMessage(round_id="other", sender=x, recipient=1, value=1) for x in (1, 3, 5)]
        with pytest.raises(ProtocolError, match="round"):
            collect_sub_shares(plan, msgs, 1)

    def test_sub_shares_in_old_holder_order(self, round_setup):
        plan = round_setup["plan"]
        msgs = [
            SubShareMessage(round_id=plan.round_id, sender=x, recipient=1, value=v)
            for x, v in ((5, 50), (1, 10), (3, 30))
        ]
        assert collect_sub_shares(plan, msgs, 1) == [10, 30, 50]

    def test_combiner_rejects_wrong_slot(self, round_setup):
        plan = round_setup["plan"]
        msgs = [
            MaskedValueMessage(round_id=plan.round_id, sender=x, slot=s, value=1)
            for x, s in ((1, 1), (3, 3), (5, 2))
        ]
        with pytest.raises(ProtocolError, match="slot"):
            Combiner(plan).combine(msgs)

    def test_combiner_needs_every_holder(self, round_setup):
        plan = round_setup["plan"]
        msgs = [
            MaskedValueMessage(round_id=plan.round_id, sender=x, slot=s, value=1)
            for x, s in ((1, 1), (3, 2))
        ]
        with pytest.raises(ProtocolError, match="Missing"):
            Combiner(plan).combine(msgs)

    def test_new_holder_outside_plan(self, round_setup):
        with pytest.raises(ProtocolError):
            NewHolder(5, round_setup["plan"])

    def test_new_holder_rejects_other_positions_share(self, round_setup):
        plan = round_setup["plan"]
        masked = MaskedShareMessage(round_id=plan.round_id, recipient=2, value=1)
        with pytest.raises(ProtocolError):
            NewHolder(1, plan).unmask(masked, [])


# ======================================================================
# Session
# ======================================================================


class TestSession:
    def test_run_small_field(self, round_setup):
        session = ResharingSession(round_setup["plan"], rng_factory=_seeded_factory(0))
        new_shares = session.run(round_setup["old"])
        assert new_shares.threshold == 2
        assert new_shares.modulus == 23
        for pair in combinations(new_shares, 2):
            assert shamir.recover(list(pair), p=23) == 7

    def test_for_shares_default_field(self):
        secret = 20160207
        shares = shamir.share(secret, 4, 30)
        old = shares[1:5]
        session = ResharingSession.for_shares(old, 4, 10, 40)
        new_shares = session.run(old)
        assert shamir.recover(new_shares[16:26]) == secret

    def test_system_random_parties(self):
        secret = 31415
        shares = shamir.share(secret, 2, 3)
        session = ResharingSession.for_shares(shares, 2, 3, 5)
        new_shares = session.run(shares)
        assert shamir.recover(new_shares[2:]) == secret

    def test_deterministic_with_seeded_factory(self, round_setup):
        plan = round_setup["plan"]
        a = ResharingSession(plan, rng_factory=_seeded_factory(5)).run(round_setup["old"])
        b = ResharingSession(plan, rng_factory=_seeded_factory(5)).run(round_setup["old"])
        assert a.shares == b.shares

    def test_shares_must_match_plan(self, round_setup):
        session = ResharingSession(round_setup["plan"])
        wrong = shamir.share(7, 3, 5, 23, 4, seeded(0)).subset([1, 2, 3])
        with pytest.raises(ProtocolError):
            session.run(wrong)

    def test_extra_shares_are_ignored(self):
        secret = 2024
        shares = shamir.share(secret, 2, 5, rng=seeded(3))
        old = shares.subset([5, 2, 4, 1])
        session = ResharingSession.for_shares(old, 2, 3, 4, slots=[3, 1])
        assert session.plan.old_indices == [5, 2]
        new_shares = session.run(old)
        for triple in combinations(new_shares, 3):
            assert shamir.recover(list(triple)) == secret

    def test_run_picks_participants_from_any_order(self, round_setup):
        old = list(round_setup["old"])
        session = ResharingSession(round_setup["plan"], rng_factory=_seeded_factory(0))
        new_shares = session.run(old[::-1] + [shamir.Share(2, 1)])
        for pair in combinations(new_shares, 2):
            assert shamir.recover(list(pair), p=23) == 7

    def test_multiple_rounds(self):
        secret = 8
        shares = shamir.share(secret, 2, 3)
        for t_new, n_new in [(3, 4), (2, 5)]:
            t = shares.threshold
            shares = ResharingSession.for_shares(shares, t, t_new, n_new).run(shares)
        assert shares.threshold == 2
        assert shamir.recover(shares[:2]) == secret
