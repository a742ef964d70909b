"""
Beat Catcher - Onset Detector
Turns one bass-band energy reading per tick into a smoothed level and a
kick-like onset flag.
"""

import math
from dataclasses import dataclass
from typing import Optional

from config import DecayMode, NOMINAL_FPS, OnsetConfig
from logging_utils import log_event


@dataclass(frozen=True)
class OnsetReading:
    """Result of one detector update"""
    smoothed: float       # Low-passed normalized level
    is_onset: bool        # Dual-threshold rise test passed this tick
    normalized: float = 0.0  # raw / peak for this tick
    rise: float = 0.0        # smoothed - previous smoothed
    peak: float = 1.0        # Peak envelope after this tick
    raw: float = 0.0         # Sanitized input energy


class OnsetDetector:
    """
    Peak-normalized, low-passed bass level with a two-tier rise test.

    Each update:
      1. pulls the decaying peak envelope up to the raw reading (floor 1)
      2. normalizes the reading by the peak
      3. lerps the smoothed level toward it
      4. flags an onset when the level is moderately loud and rising fast,
         or very loud and rising at all

    The flag is evaluated per tick, not latched; callers that want one event
    per kick compare against the previous tick's flag.
    """
    __slots__ = ('config', 'peak', 'smoothed', 'previous_smoothed', '_bad_input_logged')

    def __init__(self, config: Optional[OnsetConfig] = None):
        self.config = config or OnsetConfig()
        if not 0.0 < self.config.smoothing <= 1.0:
            raise ValueError(f"smoothing must be in (0, 1], got {self.config.smoothing}")
        if not 0.0 < self.config.peak_decay < 1.0:
            raise ValueError(f"peak_decay must be in (0, 1), got {self.config.peak_decay}")
        if not 0.0 < self.config.peak_decay_per_second < 1.0:
            raise ValueError(
                f"peak_decay_per_second must be in (0, 1), got {self.config.peak_decay_per_second}"
            )
        if not self.config.peak_floor >= 1.0:
            raise ValueError(f"peak_floor must be >= 1, got {self.config.peak_floor}")
        self.peak: float = self.config.peak_floor
        self.smoothed: float = 0.0
        self.previous_smoothed: float = 0.0
        self._bad_input_logged: bool = False

    def reset(self) -> None:
        """Clear all state for a fresh start."""
        self.peak = self.config.peak_floor
        self.smoothed = 0.0
        self.previous_smoothed = 0.0
        self._bad_input_logged = False

    def _decay_factor(self, dt: Optional[float]) -> float:
        cfg = self.config
        if cfg.decay_mode == DecayMode.PER_SECOND:
            seconds = (1.0 / NOMINAL_FPS) if dt is None else max(0.0, float(dt))
            return cfg.peak_decay_per_second ** seconds
        return cfg.peak_decay

    def _sanitize(self, raw_energy: float) -> float:
        try:
            value = float(raw_energy)
        except (TypeError, ValueError):
            value = math.nan
        if math.isfinite(value) and value >= 0.0:
            return value
        if not self._bad_input_logged:
            log_event("WARN", "Onset", "Non-finite or negative energy treated as silence", raw=raw_energy)
            self._bad_input_logged = True
        return 0.0

    def update(self, raw_energy: float, dt: Optional[float] = None) -> OnsetReading:
        """Feed one energy reading. `dt` (seconds) only matters in PER_SECOND decay mode."""
        cfg = self.config
        raw = self._sanitize(raw_energy)

        self.peak = max(self.peak * self._decay_factor(dt), raw)
        self.peak = max(self.peak, cfg.peak_floor)

        normalized = raw / self.peak
        self.smoothed += (normalized - self.smoothed) * cfg.smoothing

        rise = self.smoothed - self.previous_smoothed
        is_onset = (
            (self.smoothed > cfg.high_level_1 and rise > cfg.rise_threshold_1)
            or (self.smoothed > cfg.high_level_2 and rise > cfg.rise_threshold_2)
        )
        self.previous_smoothed = self.smoothed

        return OnsetReading(
            smoothed=self.smoothed,
            is_onset=bool(is_onset),
            normalized=normalized,
            rise=rise,
            peak=self.peak,
            raw=raw,
        )
