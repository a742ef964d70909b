"""
Beat Catcher - Spawn Scheduling
Turns onset events into rate-limited, capacity-bounded spawn decisions.

SpawnScheduler  - note spawns: onset backlog released after a delay,
                  one per window, behind a cooldown and a population cap
SpotlightTrigger - light flashes: plain cooldown on the continuous
                  onset level, with a chance of a double flash
"""

import random
from typing import Optional

from config import SpawnConfig, SpotlightConfig
from logging_utils import log_event


class SpawnScheduler:
    """Debounced note spawn queue.

    All times are caller-supplied milliseconds; the scheduler never reads a clock.
    """

    def __init__(self, config: Optional[SpawnConfig] = None):
        self.config = config or SpawnConfig()
        self.pending_count: int = 0
        self.oldest_pending_at: Optional[float] = None
        self.last_spawn_at: float = 0.0

    def reset(self, now: float = 0.0) -> None:
        """Discard the backlog; the cooldown restarts from `now`."""
        self.pending_count = 0
        self.oldest_pending_at = None
        self.last_spawn_at = float(now)

    def on_tick(
        self,
        now: float,
        onset_rising_edge: bool,
        active_count: int,
        capacity: Optional[int] = None,
    ) -> bool:
        """Queue a rising edge and decide whether one note spawns this tick."""
        cfg = self.config
        cap = cfg.max_active_notes if capacity is None else capacity

        if onset_rising_edge:
            self.pending_count += 1
            if self.oldest_pending_at is None:
                self.oldest_pending_at = now

        if self.pending_count <= 0 or self.oldest_pending_at is None:
            return False
        if now - self.oldest_pending_at < cfg.spawn_delay_ms:
            return False

        spawn_now = False
        if active_count < cap and now - self.last_spawn_at > cfg.spawn_cooldown_ms:
            spawn_now = True
            self.last_spawn_at = now
            self.pending_count -= 1
        elif active_count >= cap:
            log_event("DEBUG", "Spawn", "Population cap reached, spawn deferred",
                      active=active_count, cap=cap, pending=self.pending_count)

        # Restart the delay window for whatever is still queued
        self.oldest_pending_at = now if self.pending_count > 0 else None
        return spawn_now


class SpotlightTrigger:
    """Cooldown gate for spotlight flashes, fed by the per-tick onset level."""

    def __init__(self, config: Optional[SpotlightConfig] = None):
        self.config = config or SpotlightConfig()
        self.last_fired_at: float = 0.0

    def reset(self, now: float = 0.0) -> None:
        self.last_fired_at = float(now)

    def on_tick(self, now: float, strong: bool, smoothed: float, rng: random.Random) -> int:
        """Return how many spotlights to add this tick (0, 1 or 2)."""
        cfg = self.config
        if not strong or now - self.last_fired_at <= cfg.cooldown_ms:
            return 0

        self.last_fired_at = now
        count = 1
        if smoothed > cfg.double_flash_level and rng.random() < cfg.double_flash_chance:
            count += 1
        return count
