import math
import unittest

from config import SpawnConfig, SpotlightConfig
from spawn_scheduler import SpawnScheduler, SpotlightTrigger


class FixedRandom:
    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


def _run(scheduler, start_ms, ticks, tick_ms=16.0, edges=(0,), active_count=0):
    spawn_times = []
    now = start_ms
    for i in range(ticks):
        if scheduler.on_tick(now, i in edges, active_count):
            spawn_times.append(now)
        now += tick_ms
    return spawn_times


class TestSpawnScheduler(unittest.TestCase):
    def test_single_edge_released_after_delay(self):
        sched = SpawnScheduler()
        sched.reset(0.0)
        spawns = _run(sched, 1000.0, 60)
        self.assertEqual(spawns, [1208.0])
        self.assertEqual(sched.pending_count, 0)
        self.assertIsNone(sched.oldest_pending_at)
        self.assertEqual(sched.last_spawn_at, 1208.0)

    def test_cooldown_defers_release_to_next_window(self):
        sched = SpawnScheduler()
        sched.reset(1000.0)
        spawns = _run(sched, 1000.0, 60)
        # 1208: delay met but only 208 ms since reset; window restarts at 1208
        self.assertEqual(spawns, [1416.0])

    def test_population_cap_blocks_and_keeps_backlog(self):
        sched = SpawnScheduler()
        spawns = _run(sched, 1000.0, 100, active_count=22)
        self.assertEqual(spawns, [])
        self.assertEqual(sched.pending_count, 1)
        self.assertIsNotNone(sched.oldest_pending_at)

        # Room frees up: the queued spawn goes out at the next window
        now = 1000.0 + 100 * 16.0
        released = None
        for _ in range(30):
            if sched.on_tick(now, False, 21):
                released = now
                break
            now += 16.0
        self.assertIsNotNone(released)
        self.assertEqual(sched.pending_count, 0)

    def test_explicit_capacity_overrides_config(self):
        sched = SpawnScheduler(SpawnConfig(max_active_notes=22))
        self.assertFalse(sched.on_tick(0.0, True, 5, capacity=5))
        self.assertFalse(sched.on_tick(400.0, False, 5, capacity=5))
        self.assertTrue(sched.on_tick(800.0, False, 5, capacity=6))

    def test_never_requests_spawn_at_or_above_cap(self):
        sched = SpawnScheduler()
        now = 0.0
        for i in range(2000):
            active = 22 + (i % 5)
            self.assertFalse(sched.on_tick(now, i % 3 == 0, active))
            now += 16.0

    def test_rate_limited_under_continuous_onsets(self):
        cfg = SpawnConfig()
        sched = SpawnScheduler(cfg)
        spawn_times = _run(sched, 0.0, int(10000 / 16), edges=range(10000))
        self.assertGreater(len(spawn_times), 0)

        limit = math.floor(1000.0 / cfg.spawn_cooldown_ms) + 1
        for start in spawn_times:
            in_window = [t for t in spawn_times if start <= t < start + 1000.0]
            self.assertLessEqual(len(in_window), limit)
        for earlier, later in zip(spawn_times, spawn_times[1:]):
            self.assertGreater(later - earlier, cfg.spawn_cooldown_ms)

    def test_pending_marker_invariant(self):
        sched = SpawnScheduler()
        now = 0.0
        for i in range(1500):
            sched.on_tick(now, i % 7 == 0 or i % 11 == 0, i % 30)
            self.assertEqual(sched.oldest_pending_at is None, sched.pending_count == 0)
            self.assertGreaterEqual(sched.pending_count, 0)
            now += 16.0

    def test_burst_of_edges_drains_one_per_window(self):
        sched = SpawnScheduler()
        edges = [i * 2 for i in range(10)]  # ten rising edges within ~320 ms
        spawns = _run(sched, 1000.0, 400, edges=edges)
        self.assertEqual(len(spawns), 10)
        for earlier, later in zip(spawns, spawns[1:]):
            self.assertGreaterEqual(later - earlier, 200.0)
            self.assertGreater(later - earlier, 350.0)

    def test_reset_discards_backlog(self):
        sched = SpawnScheduler()
        sched.on_tick(0.0, True, 0)
        sched.on_tick(16.0, True, 0)
        self.assertEqual(sched.pending_count, 2)
        sched.reset(500.0)
        self.assertEqual(sched.pending_count, 0)
        self.assertIsNone(sched.oldest_pending_at)
        self.assertEqual(sched.last_spawn_at, 500.0)


class TestSpotlightTrigger(unittest.TestCase):
    def test_cooldown(self):
        trig = SpotlightTrigger()
        rng = FixedRandom(0.99)
        self.assertEqual(trig.on_tick(50.0, True, 0.5, rng), 0)    # within 120 ms of start
        self.assertEqual(trig.on_tick(200.0, True, 0.5, rng), 1)
        self.assertEqual(trig.on_tick(300.0, True, 0.5, rng), 0)
        self.assertEqual(trig.on_tick(320.0, True, 0.5, rng), 0)   # exactly 120 ms is not enough
        self.assertEqual(trig.on_tick(321.0, True, 0.5, rng), 1)

    def test_not_strong_never_fires(self):
        trig = SpotlightTrigger()
        self.assertEqual(trig.on_tick(10000.0, False, 0.99, FixedRandom(0.0)), 0)
        self.assertEqual(trig.last_fired_at, 0.0)

    def test_double_flash_when_very_loud(self):
        cfg = SpotlightConfig()
        trig = SpotlightTrigger(cfg)
        self.assertEqual(trig.on_tick(1000.0, True, 0.95, FixedRandom(0.1)), 2)
        self.assertEqual(trig.on_tick(2000.0, True, 0.95, FixedRandom(0.5)), 1)
        self.assertEqual(trig.on_tick(3000.0, True, 0.85, FixedRandom(0.0)), 1)

    def test_reset(self):
        trig = SpotlightTrigger()
        trig.on_tick(1000.0, True, 0.5, FixedRandom(0.9))
        trig.reset(5000.0)
        self.assertEqual(trig.on_tick(5100.0, True, 0.5, FixedRandom(0.9)), 0)
        self.assertEqual(trig.on_tick(5121.0, True, 0.5, FixedRandom(0.9)), 1)


if __name__ == "__main__":
    unittest.main()
