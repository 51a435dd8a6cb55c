"""Tests for health, inventory and loss-bonus tracking."""

import pytest

from tacboard.core.constants import BOT_IDENTITY, ItemAction, Side
from tacboard.core.lifecycle import EventContext, RoundClose, RoundOpen
from tacboard.domains.economy import (
    InventoryTracker,
    LossBonusTracker,
    calculate_loss_bonus,
    calculate_value,
)
from tacboard.domains.health import HealthTracker
from tacboard.parsing.events import FreezeEnd, ItemTransaction, Kill


def _buy(player, item, tick=1, kind=ItemAction.PURCHASE):
    return ItemTransaction(tick=tick, player=player, item=item, kind=kind)


class TestHealthTracker:
    """Applied damage never exceeds remaining HP."""

    def test_default_health(self):
        assert HealthTracker().get_health("a") == 100

    def test_applied_damage_is_capped(self):
        health = HealthTracker()
        assert health.record_damage("a", 80) == 80
        assert health.record_damage("a", 50) == 20
        assert health.get_health("a") == 0
        assert health.record_damage("a", 10) == 0

    def test_round_open_restores_health(self):
        health = HealthTracker()
        health.record_damage("a", 70)
        health.on_round_open(RoundOpen(number=2, tick=0, sides={}, alive={}))
        assert health.get_health("a") == 100

    def test_bot_death_restores_sentinel_health(self):
        health = HealthTracker()
        health.record_damage(BOT_IDENTITY, 100)
        ctx = EventContext(round_number=1, tick=10, elapsed=0.0, sides={}, alive={})
        health.on_event(Kill(tick=10, victim=BOT_IDENTITY, attacker="a"), ctx)
        assert health.record_damage(BOT_IDENTITY, 60) == 60


class TestValues:
    def test_value_floor(self):
        assert calculate_value([]) == 200
        assert calculate_value(["unknown_thing"]) == 200

    def test_value_sums_prices(self):
        assert calculate_value(["ak47", "defuser"]) == 3100

    @pytest.mark.parametrize("count,bonus", [(0, 1400), (1, 1900), (4, 3400), (9, 3400), (-1, 1400)])
    def test_loss_bonus(self, count, bonus):
        assert calculate_loss_bonus(count) == bonus


class TestInventoryTracker:
    """Inventory mutation and snapshots."""

    def test_purchase_and_drop(self):
        inventory = InventoryTracker()
        inventory.apply(_buy("a", "ak47"))
        inventory.apply(_buy("a", "flashbang"))
        inventory.apply(_buy("a", "ak47", kind=ItemAction.DROP))
        assert inventory.items_of("a") == ["flashbang"]

    def test_drop_of_untracked_item_is_ignored(self):
        inventory = InventoryTracker()
        inventory.apply(_buy("a", "awp", kind=ItemAction.DROP))
        assert inventory.items_of("a") == []

    def test_freeze_end_snapshot_freezes_start_value(self):
        inventory = InventoryTracker()
        inventory.apply(_buy("a", "ak47"))
        ctx = EventContext(round_number=1, tick=10, elapsed=0.0, sides={"a": Side.T}, alive={})
        inventory.on_event(FreezeEnd(tick=10), ctx)
        inventory.apply(_buy("a", "awp", tick=20))
        assert inventory.start_value("a") == 2700
        assert inventory.current_value("a") == 2700 + 4750

    def test_dead_players_lose_gear(self):
        inventory = InventoryTracker()
        inventory.apply(_buy("a", "ak47"))
        inventory.apply(_buy("b", "m4a1"))
        inventory.handle_round_transition(survivors={"a"}, side_swap=False)
        assert inventory.items_of("a") == ["ak47"]
        assert inventory.items_of("b") == []

    def test_side_swap_clears_everyone(self):
        inventory = InventoryTracker()
        inventory.apply(_buy("a", "ak47"))
        closing = RoundClose(
            number=12,
            tick=100,
            winner=Side.T,
            sides={"a": Side.T},
            alive={Side.T: frozenset({"a"}), Side.CT: frozenset()},
            side_swap_next=True,
            survivors=frozenset({"a"}),
        )
        inventory.on_round_close(closing)
        assert inventory.items_of("a") == []
        assert inventory.end_value("a") == 2700

    def test_kits(self):
        inventory = InventoryTracker()
        inventory.apply(_buy("a", "defuser"))
        assert inventory.has_kit("a")
        assert inventory.kit_count(["a", "b"]) == 1


class TestLossBonusTracker:
    def test_winner_steps_down_loser_steps_up(self):
        tracker = LossBonusTracker()
        for _ in range(3):
            tracker.update(Side.CT)
        assert tracker.get_loss_bonus(Side.T) == 2900
        tracker.update(Side.T)
        assert tracker.losses[Side.T] == 2
        assert tracker.losses[Side.CT] == 1

    def test_counter_is_clamped(self):
        tracker = LossBonusTracker()
        for _ in range(10):
            tracker.update(Side.T)
        assert tracker.losses[Side.CT] == 4
        assert tracker.losses[Side.T] == 0
