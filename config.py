# Beat Catcher Configuration
# All default values and constants

from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from enum import IntEnum
from typing import List

from logging_utils import log_event


CURRENT_CONFIG_VERSION = 1

NOMINAL_FPS = 60.0

class DecayMode(IntEnum):
    """How the onset detector's peak envelope decays"""
    PER_TICK = 1           # Constant factor per update call (frame-rate coupled)
    PER_SECOND = 2         # factor ** dt, independent of frame rate

@dataclass
class OnsetConfig:
    """Bass onset detection parameters"""
    # Frequency band read from the energy source (Hz)
    freq_low: float = 20.0
    freq_high: float = 150.0
    peak_decay: float = 0.96          # Peak envelope multiplier per tick (PER_TICK mode)
    decay_mode: DecayMode = DecayMode.PER_TICK
    peak_decay_per_second: float = 0.96 ** NOMINAL_FPS  # Same feel at 60 fps in PER_SECOND mode
    peak_floor: float = 1.0           # Peak never drops below this, >= 1
    smoothing: float = 0.2            # Low-pass lerp factor, (0, 1]
    # Tier 1: moderately loud and rising fast
    high_level_1: float = 0.45
    rise_threshold_1: float = 0.025
    # Tier 2: very loud and rising at all
    high_level_2: float = 0.75
    rise_threshold_2: float = 0.015

@dataclass
class SpawnConfig:
    """Note spawn queue release rules"""
    spawn_delay_ms: float = 200.0     # Wait after the triggering onset
    spawn_cooldown_ms: float = 350.0  # Min time between released spawns
    max_active_notes: int = 22        # Soft population cap

@dataclass
class NoteConfig:
    """Falling note pool and spawn profile"""
    pool_capacity: int = 64           # Hard slot count
    start_y: float = -20.0            # Spawn just above the playfield
    speed: float = 200.0              # Fall speed (px/s)
    radius_min: float = 12.0
    radius_max: float = 20.0
    spawn_margin: float = 30.0        # Keep spawn x this far from the side edges

@dataclass
class SpotlightConfig:
    """Spotlight flash pool, trigger and random profile"""
    pool_capacity: int = 16
    cooldown_ms: float = 120.0        # Min time between flashes
    double_flash_level: float = 0.9   # Smoothed level that allows a second flash
    double_flash_chance: float = 0.4  # Probability of the second flash
    spawn_margin: float = 60.0
    initial_alpha: float = 180.0
    decay_min: float = 4.0            # Alpha lost per tick
    decay_max: float = 7.0
    angle_min: float = -0.15          # Tilt (radians)
    angle_max: float = 0.15
    width_min: float = 60.0
    width_max: float = 120.0
    length_min: float = 260.0
    length_max: float = 420.0
    # Soft neon range: pink-blue-purple
    red_range: tuple = (100.0, 255.0)
    green_range: tuple = (0.0, 150.0)
    blue_range: tuple = (150.0, 255.0)

@dataclass
class PlayfieldConfig:
    """Playfield size in pixels"""
    width: float = 800.0
    height: float = 600.0

@dataclass
class PaddleConfig:
    """Catch paddle geometry"""
    width: float = 140.0
    height: float = 16.0
    bottom_offset: float = 80.0       # Paddle centre sits this far above the bottom edge

@dataclass
class SessionConfig:
    """Arcade loop rules"""
    max_lives: int = 3
    nominal_fps: float = NOMINAL_FPS  # dt used on the first tick of a game

@dataclass
class TrackConfig:
    """Menu track entry (audio itself is loaded by the playback layer)"""
    title: str = ""
    file: str = ""


def _default_tracks() -> List[TrackConfig]:
    return [
        TrackConfig(title="Stars Align", file="assets/stars_align.mp3"),
        TrackConfig(title="California Roll", file="assets/california_roll.mp3"),
        TrackConfig(title="2000 Excursion", file="assets/2000_excursion.mp3"),
    ]

@dataclass
class Config:
    """Master configuration"""
    version: int = 1                  # Schema version for persisted configs
    onset: OnsetConfig = field(default_factory=OnsetConfig)
    spawn: SpawnConfig = field(default_factory=SpawnConfig)
    notes: NoteConfig = field(default_factory=NoteConfig)
    spotlights: SpotlightConfig = field(default_factory=SpotlightConfig)
    playfield: PlayfieldConfig = field(default_factory=PlayfieldConfig)
    paddle: PaddleConfig = field(default_factory=PaddleConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    tracks: List[TrackConfig] = field(default_factory=_default_tracks)

    # Global
    log_level: str = "INFO"           # Logging level (DEBUG/INFO/WARNING/ERROR)
    report_generation_enabled: bool = True    # Write per-game session reports


def _list_item_type(target, key):
    for f in fields(target):
        if f.name == key and f.default_factory is not MISSING:
            sample = f.default_factory()
            if isinstance(sample, list) and sample and is_dataclass(sample[0]):
                return type(sample[0])
    return None


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; IntEnum fields are coerced when possible."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current) and isinstance(value, dict):
            apply_dict_to_dataclass(current, value)
            continue

        if isinstance(current, IntEnum):
            try:
                setattr(target, key, current.__class__(value))
            except (TypeError, ValueError):
                log_event("WARN", "Config", f"Could not convert {key} to {current.__class__.__name__}, keeping default")
            continue

        if isinstance(current, list) and isinstance(value, list):
            item_type = _list_item_type(target, key)
            if item_type is not None:
                items = []
                for entry in value:
                    item = item_type()
                    apply_dict_to_dataclass(item, entry)
                    items.append(item)
                setattr(target, key, items)
                continue

        if isinstance(current, tuple) and isinstance(value, list):
            value = tuple(value)

        setattr(target, key, value)


def _clamped(value, default: float, low: float, high: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = default
    if number != number:  # NaN
        number = default
    return max(low, min(high, number))


def migrate_config(config: Config, loaded_version) -> None:
    """Upgrade older config structures to the current schema.
    Fills None values with defaults, clamps tuning ranges and bumps version."""
    try:
        version = int(loaded_version) if loaded_version is not None else 0
    except (TypeError, ValueError):
        version = 0

    defaults = Config()

    if version < 1:
        # Pre-versioned files could carry nulls for any section value
        for section_name in ("onset", "spawn", "notes", "spotlights", "playfield", "paddle", "session"):
            section = getattr(config, section_name)
            default_section = getattr(defaults, section_name)
            for f in fields(section):
                if getattr(section, f.name) is None:
                    setattr(section, f.name, getattr(default_section, f.name))

    if getattr(config, 'report_generation_enabled', True) is None:
        config.report_generation_enabled = True
    if not getattr(config, 'log_level', None):
        config.log_level = "INFO"
    if not config.tracks:
        config.tracks = _default_tracks()

    # Always clamp ranges the detector and pools reject
    onset = config.onset
    onset.smoothing = _clamped(onset.smoothing, defaults.onset.smoothing, 0.01, 1.0)
    onset.peak_decay = _clamped(onset.peak_decay, defaults.onset.peak_decay, 0.5, 0.999)
    onset.peak_decay_per_second = _clamped(
        onset.peak_decay_per_second, defaults.onset.peak_decay_per_second, 1e-6, 0.999
    )
    onset.peak_floor = _clamped(onset.peak_floor, defaults.onset.peak_floor, 1.0, 255.0)

    config.notes.pool_capacity = int(_clamped(config.notes.pool_capacity, defaults.notes.pool_capacity, 1, 4096))
    config.spotlights.pool_capacity = int(
        _clamped(config.spotlights.pool_capacity, defaults.spotlights.pool_capacity, 1, 1024)
    )
    config.spawn.max_active_notes = int(
        _clamped(config.spawn.max_active_notes, defaults.spawn.max_active_notes, 0, config.notes.pool_capacity)
    )
    config.spotlights.double_flash_chance = _clamped(
        config.spotlights.double_flash_chance, defaults.spotlights.double_flash_chance, 0.0, 1.0
    )
    config.session.max_lives = int(_clamped(config.session.max_lives, defaults.session.max_lives, 1, 99))

    config.version = CURRENT_CONFIG_VERSION
