"""
Beat Catcher - Energy Sources
Band-energy readers the game session polls once per tick.

The playback layer owns the audio and the FFT; the session only sees the
EnergySource capability: "is a track audible" and "how much energy is in
this band right now" (roughly 0-255, the magnitude scale of a byte spectrum).
"""

from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class EnergySource(Protocol):
    def is_active(self) -> bool:
        ...

    def band_energy(self, low_hz: float, high_hz: float) -> float:
        ...


def band_energy_from_spectrum(
    spectrum: np.ndarray | None,
    sample_rate: int,
    freq_low: float,
    freq_high: float,
) -> float:
    """Average magnitude of the spectrum bins covering [freq_low, freq_high] Hz."""
    if spectrum is None or len(spectrum) == 0:
        return 0.0

    freq_per_bin = sample_rate / (2 * len(spectrum))
    if freq_per_bin <= 0:
        return 0.0

    low_bin = max(0, int(freq_low / freq_per_bin))
    high_bin = min(len(spectrum) - 1, int(freq_high / freq_per_bin))
    if low_bin > high_bin:
        return 0.0

    band = np.asarray(spectrum[low_bin:high_bin + 1], dtype=np.float64)
    band = band[np.isfinite(band)]
    if band.size == 0:
        return 0.0
    return float(np.mean(band))


class SpectrumEnergySource:
    """Reads band energy from the latest magnitude spectrum of the playing track."""

    def __init__(
        self,
        spectrum_provider: Callable[[], Optional[np.ndarray]],
        sample_rate: int = 44100,
        active_provider: Optional[Callable[[], bool]] = None,
    ):
        self.spectrum_provider = spectrum_provider
        self.sample_rate = sample_rate
        self.active_provider = active_provider

    def is_active(self) -> bool:
        if self.active_provider is None:
            return True
        return bool(self.active_provider())

    def band_energy(self, low_hz: float, high_hz: float) -> float:
        return band_energy_from_spectrum(self.spectrum_provider(), self.sample_rate, low_hz, high_hz)


class ScriptedEnergySource:
    """Replays a fixed energy sequence, one value per read, then silence.

    The band arguments are ignored: the script already is the band energy.
    """

    def __init__(self, values: Iterable[float], active: bool = True, stop_when_exhausted: bool = False):
        self.values = np.asarray(list(values), dtype=np.float64)
        self.active = active
        self.stop_when_exhausted = stop_when_exhausted
        self.index = 0

    @property
    def exhausted(self) -> bool:
        return self.index >= len(self.values)

    def is_active(self) -> bool:
        if self.stop_when_exhausted and self.exhausted:
            return False
        return self.active

    def band_energy(self, low_hz: float, high_hz: float) -> float:
        if self.exhausted:
            return 0.0
        value = float(self.values[self.index])
        self.index += 1
        return value


def synthetic_kick_energy(
    ticks: int,
    tick_ms: float = 16.0,
    bpm: float = 120.0,
    level: float = 200.0,
    floor: float = 15.0,
    hold_ms: float = 80.0,
    release_ms: float = 120.0,
    seed: Optional[int] = None,
) -> np.ndarray:
    """Bass-band energy of a four-on-the-floor kick: hold, exponential release, noisy floor."""
    rng = np.random.default_rng(seed)
    times_ms = np.arange(ticks, dtype=np.float64) * tick_ms
    beat_ms = 60000.0 / bpm
    since_kick = np.mod(times_ms, beat_ms)

    envelope = np.where(
        since_kick < hold_ms,
        1.0,
        np.exp(-(since_kick - hold_ms) / max(1e-6, release_ms)),
    )
    noise = rng.uniform(0.0, floor, size=ticks)
    return np.clip(floor + (level - floor) * envelope + noise - floor / 2.0, 0.0, 255.0)
