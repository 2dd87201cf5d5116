"""
Tests for the burn-for-boost registry.

Covers:
- Tier selection (best qualifying tier, no stacking)
- Strict-inequality lazy expiry
- Overwrite-not-extend on re-burn
- Fail-closed behaviour for sub-floor amounts and failed burns
- Per-user serialization of concurrent burns
"""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from eggwisdom.conftest import T0, RecordingBurner, RecordingNotifier
from eggwisdom.rewards.amounts import SECONDS_PER_DAY, Amount, Ratio
from eggwisdom.rewards.boost import (
    BOOST_TIERS,
    MINIMUM_BOOST_BURN,
    BoostRecord,
    BoostRegistry,
    BoostTier,
    InMemoryBoostStore,
    select_boost_tier,
    validate_boost_tiers,
)
from eggwisdom.rewards.errors import BurnFailed, InvalidAmount, RewardsError

DAY = SECONDS_PER_DAY


class TestTierSelection:
    """Tests for select_boost_tier."""

    @pytest.mark.parametrize(
        "amount, duration, multiplier",
        [
            (5_000, 3 * DAY, "1.4"),
            (14_999, 3 * DAY, "1.4"),
            (15_000, 10 * DAY, "1.5"),
            (29_999, 10 * DAY, "1.5"),
            (30_000, 20 * DAY, "1.6"),
            (10_000_000, 20 * DAY, "1.6"),
        ],
    )
    def test_best_qualifying_tier(self, amount, duration, multiplier):
        tier = select_boost_tier(Amount.of(amount))
        assert tier is not None
        assert tier.duration_seconds == duration
        assert tier.reward_multiplier == Ratio.of(multiplier)

    def test_below_floor_selects_nothing(self):
        assert select_boost_tier(Amount.of("4999.99999999")) is None
        assert select_boost_tier(Amount.zero()) is None

    def test_minimum_is_lowest_tier(self):
        assert MINIMUM_BOOST_BURN == Amount.of(5_000)

    def test_table_must_descend(self):
        with pytest.raises(ValueError, match="descend"):
            validate_boost_tiers(list(reversed(BOOST_TIERS)))

    def test_table_rejects_zero_duration(self):
        with pytest.raises(ValueError, match="duration"):
            validate_boost_tiers([BoostTier(Amount.of(1), 0, Ratio.of(2))])

    def test_registry_validates_table(self, burner):
        with pytest.raises(ValueError):
            BoostRegistry(burner, tiers=())


class TestBoostRecord:
    def test_strict_expiry(self):
        record = BoostRecord(expiration=T0 + 10, multiplier=Ratio.of(2))
        assert record.is_active(T0 + 9)
        assert not record.is_active(T0 + 10)

    def test_dict_round_trip(self):
        record = BoostRecord(expiration=T0, multiplier=Ratio.of("1.5"))
        assert BoostRecord.from_dict(record.to_dict()) == record


class TestQueries:
    """Queries on users without records."""

    @given(now=st.integers(min_value=0, max_value=2**40))
    @settings(max_examples=50, deadline=None, derandomize=True)
    def test_unknown_user_is_never_boosted(self, now):
        registry = BoostRegistry(RecordingBurner())
        assert registry.has_active_boost("nobody", now) is False
        assert registry.get_multiplier("nobody", now) == Ratio.ONE
        assert registry.remaining_seconds("nobody", now) == 0
        assert registry.get_boost("nobody") is None


class TestBurnForBoost:
    """Tests for BoostRegistry.burn_for_boost."""

    @pytest.mark.asyncio
    async def test_top_tier_window(self, registry, burner):
        expiration, duration = await registry.burn_for_boost("alice", Amount.of(30_000), T0)

        assert duration == 20 * DAY
        assert expiration == T0 + 20 * DAY
        assert burner.calls == [("alice", Amount.of(30_000))]
        assert registry.has_active_boost("alice", T0 + 20 * DAY - 1) is True
        assert registry.has_active_boost("alice", T0 + 20 * DAY) is False

    @pytest.mark.asyncio
    async def test_multiplier_flat_by_default(self, registry):
        await registry.burn_for_boost("alice", Amount.of(5_000), T0)

        assert registry.get_multiplier("alice", T0) == Ratio.of(2)
        assert registry.get_multiplier("alice", T0 + 3 * DAY) == Ratio.ONE

    @pytest.mark.asyncio
    async def test_multiplier_per_tier_scheme(self, burner):
        registry = BoostRegistry(burner, flat_multiplier=None)
        await registry.burn_for_boost("alice", Amount.of(15_000), T0)

        assert registry.get_multiplier("alice", T0 + 1) == Ratio.of("1.5")

    @pytest.mark.asyncio
    async def test_reburn_overwrites_not_extends(self, registry):
        await registry.burn_for_boost("alice", Amount.of(30_000), T0)
        t2 = T0 + DAY
        expiration, duration = await registry.burn_for_boost("alice", Amount.of(5_000), t2)

        assert duration == 3 * DAY
        assert expiration == t2 + 3 * DAY
        assert registry.get_boost("alice").expiration == t2 + 3 * DAY
        # The earlier, longer window is gone.
        assert registry.has_active_boost("alice", t2 + 3 * DAY) is False

    @pytest.mark.asyncio
    async def test_reburn_after_expiry_restarts(self, registry):
        await registry.burn_for_boost("alice", Amount.of(5_000), T0)
        later = T0 + 30 * DAY
        assert registry.has_active_boost("alice", later) is False

        await registry.burn_for_boost("alice", Amount.of(5_000), later)
        assert registry.has_active_boost("alice", later) is True

    @pytest.mark.asyncio
    async def test_notifies_grant(self, registry, notifier):
        await registry.burn_for_boost("alice", Amount.of(15_000), T0)

        assert notifier.events == [(Amount.of(15_000), "alice", 10 * DAY)]

    @pytest.mark.asyncio
    async def test_below_floor_has_no_side_effects(self, registry, burner, notifier, store):
        with pytest.raises(InvalidAmount) as exc:
            await registry.burn_for_boost("alice", Amount.of(4_999), T0)

        assert exc.value.minimum == Amount.of(5_000)
        assert burner.calls == []
        assert notifier.events == []
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_failed_burn_leaves_state_unchanged(self, store, notifier):
        good = RecordingBurner()
        registry = BoostRegistry(good, store=store, notifier=notifier)
        await registry.burn_for_boost("alice", Amount.of(5_000), T0)
        before = registry.get_boost("alice")

        failing = BoostRegistry(
            RecordingBurner(fail_with=RuntimeError("insufficient balance")),
            store=store,
            notifier=notifier,
        )
        with pytest.raises(BurnFailed, match="insufficient balance") as exc:
            await failing.burn_for_boost("alice", Amount.of(30_000), T0 + 10)

        assert isinstance(exc.value, RewardsError)
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert failing.get_boost("alice") == before
        assert failing.has_active_boost("alice", T0 + 3 * DAY) is False
        assert len(notifier.events) == 1

    @pytest.mark.asyncio
    async def test_burn_failure_logged_with_context(self, store, domain_log):
        registry = BoostRegistry(RecordingBurner(fail_with=RuntimeError("insufficient balance")), store=store)

        with pytest.raises(BurnFailed):
            await registry.burn_for_boost("alice", Amount.of(5_000), T0)

        assert domain_log.contexts("eggwisdom.rewards.boost")[-1] == {
            "user": "alice",
            "amount": "5000.00000000",
            "reason": "insufficient balance",
        }

    @pytest.mark.asyncio
    async def test_failed_first_burn_creates_no_record(self, store):
        registry = BoostRegistry(RecordingBurner(fail_with=PermissionError()), store=store)
        with pytest.raises(BurnFailed):
            await registry.burn_for_boost("alice", Amount.of(5_000), T0)

        assert registry.has_active_boost("alice", T0) is False
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_failing_notifier_does_not_fail_burn(self, burner):
        def broken(amount, user, duration):
            raise RuntimeError("sink down")

        registry = BoostRegistry(burner, notifier=broken)
        expiration, _ = await registry.burn_for_boost("alice", Amount.of(5_000), T0)

        assert registry.get_boost("alice").expiration == expiration

    @pytest.mark.asyncio
    async def test_rejects_blank_user(self, registry, burner):
        with pytest.raises(ValueError):
            await registry.burn_for_boost("", Amount.of(5_000), T0)
        assert burner.calls == []


class TestConcurrency:
    """Per-user serialization of burns."""

    @pytest.mark.asyncio
    async def test_same_user_burns_do_not_interleave(self):
        burner = RecordingBurner(delay=0.01)
        registry = BoostRegistry(burner)

        await asyncio.gather(
            registry.burn_for_boost("alice", Amount.of(30_000), T0),
            registry.burn_for_boost("alice", Amount.of(5_000), T0 + 5),
        )

        assert burner.max_in_flight["alice"] == 1
        # Second burn applied last and overwrote the first.
        assert registry.get_boost("alice").expiration == T0 + 5 + 3 * DAY

    @pytest.mark.asyncio
    async def test_different_users_proceed_in_parallel(self):
        burner = RecordingBurner(delay=0.01)
        registry = BoostRegistry(burner)

        await asyncio.gather(
            registry.burn_for_boost("alice", Amount.of(5_000), T0),
            registry.burn_for_boost("bob", Amount.of(5_000), T0),
        )

        assert burner.max_total_in_flight == 2
        assert sorted(registry.active_users(T0)) == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_failure_does_not_block_next_burn(self):
        burner = RecordingBurner(fail_with=RuntimeError("nope"), delay=0.01)
        registry = BoostRegistry(burner)

        with pytest.raises(BurnFailed):
            await registry.burn_for_boost("alice", Amount.of(5_000), T0)

        burner.fail_with = None
        await registry.burn_for_boost("alice", Amount.of(5_000), T0)
        assert registry.has_active_boost("alice", T0)


    @pytest.mark.asyncio
    async def test_lock_table_drained_after_many_users(self):
        registry = BoostRegistry(RecordingBurner())

        for index in range(200):
            await registry.burn_for_boost(f"user-{index}", Amount.of(5_000), T0)

        assert registry._locks == {}
        assert registry._lock_users == {}
        assert len(registry.active_users(T0)) == 200

    @pytest.mark.asyncio
    async def test_lock_table_drained_after_failed_burn(self):
        registry = BoostRegistry(RecordingBurner(fail_with=RuntimeError("nope")))

        with pytest.raises(BurnFailed):
            await registry.burn_for_boost("alice", Amount.of(5_000), T0)

        assert registry._locks == {}

    @pytest.mark.asyncio
    async def test_lock_shared_while_waiters_queue(self):
        burner = RecordingBurner(delay=0.01)
        registry = BoostRegistry(burner)

        first = asyncio.create_task(registry.burn_for_boost("alice", Amount.of(5_000), T0))
        second = asyncio.create_task(registry.burn_for_boost("alice", Amount.of(15_000), T0 + 1))
        await asyncio.sleep(0)

        assert list(registry._locks) == ["alice"]
        assert registry._lock_users == {"alice": 2}

        await asyncio.gather(first, second)
        assert burner.max_in_flight["alice"] == 1
        assert registry._locks == {}

    @pytest.mark.asyncio
    async def test_cancelled_waiter_releases_its_slot(self):
        registry = BoostRegistry(RecordingBurner(delay=0.05))

        first = asyncio.create_task(registry.burn_for_boost("alice", Amount.of(5_000), T0))
        waiter = asyncio.create_task(registry.burn_for_boost("alice", Amount.of(5_000), T0 + 1))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        await first
        assert registry._locks == {}
        assert registry.get_boost("alice").expiration == T0 + 3 * DAY


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_to_dict_from_dict(self, registry, burner):
        await registry.burn_for_boost("alice", Amount.of(30_000), T0)
        await registry.burn_for_boost("bob", Amount.of(5_000), T0)

        restored = BoostRegistry.from_dict(registry.to_dict(), burner)

        assert restored.get_boost("alice") == registry.get_boost("alice")
        assert restored.get_boost("bob") == registry.get_boost("bob")
        assert restored.remaining_seconds("alice", T0 + DAY) == 19 * DAY

    def test_store_is_injectable(self, burner):
        store = InMemoryBoostStore({"carol": BoostRecord(T0 + 100, Ratio.of("1.4"))})
        registry = BoostRegistry(burner, store=store)

        assert registry.has_active_boost("carol", T0)
        assert registry.get_multiplier("carol", T0) == Ratio.of(2)

    @pytest.mark.asyncio
    async def test_from_dict_into_supplied_store(self, registry, burner):
        await registry.burn_for_boost("alice", Amount.of(15_000), T0)
        store = InMemoryBoostStore({"dave": BoostRecord(T0 + 50, Ratio.of("1.4"))})

        restored = BoostRegistry.from_dict(registry.to_dict(), burner, store=store, flat_multiplier=None)

        assert restored.get_boost("alice") == registry.get_boost("alice")
        assert store.get("alice") == registry.get_boost("alice")
        assert restored.get_multiplier("dave", T0) == Ratio.of("1.4")
        assert len(store) == 2

    def test_from_dict_snapshot_overwrites_store_entry(self, burner):
        store = InMemoryBoostStore({"alice": BoostRecord(T0, Ratio.of("1.4"))})
        snapshot = {"boosts": {"alice": {"expiration": T0 + 10, "multiplier": "1.6"}}}

        restored = BoostRegistry.from_dict(snapshot, burner, store=store)

        assert restored.get_boost("alice") == BoostRecord(T0 + 10, Ratio.of("1.6"))


@given(
    first=st.sampled_from([5_000, 15_000, 30_000]),
    second=st.sampled_from([5_000, 15_000, 30_000]),
    gap=st.integers(min_value=1, max_value=40 * DAY),
)
@settings(max_examples=60, deadline=None, derandomize=True)
def test_reburn_expiration_is_new_window_only(first: int, second: int, gap: int) -> None:
    async def scenario() -> None:
        registry = BoostRegistry(RecordingBurner(), notifier=RecordingNotifier())
        await registry.burn_for_boost("alice", Amount.of(first), T0)
        t2 = T0 + gap
        expiration, duration = await registry.burn_for_boost("alice", Amount.of(second), t2)
        assert expiration == t2 + duration
        assert registry.get_boost("alice").expiration == t2 + duration

    asyncio.run(scenario())
