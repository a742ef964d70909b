"""
Beat Catcher - Game Session
Owns the whole audio-reactive pipeline for one player and runs it one tick
per rendered frame.

    EnergySource -> OnsetDetector -> rising edge -> SpawnScheduler -> note pool
                                  -> level       -> SpotlightTrigger -> light pool
    note pool -> paddle catch (score) / fall out (life lost) -> GAME_OVER

States: MENU (initial) -> PLAYING -> GAME_OVER -> PLAYING (restart) or MENU.
Every entry into PLAYING resets score, lives, pools, detector and scheduler.
Outside PLAYING the pipeline is idle.
"""

import random
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, Tuple

from collision import circle_intersects_rect
from config import Config, PaddleConfig, PlayfieldConfig, TrackConfig
from energy_source import EnergySource
from entity_pool import EntityPool, Note, Spotlight, make_note, make_spotlight
from logging_utils import log_event
from onset_detector import OnsetDetector, OnsetReading
from session_reporter import SessionReporter
from spawn_scheduler import SpawnScheduler, SpotlightTrigger


class GameState(IntEnum):
    MENU = 0
    PLAYING = 1
    GAME_OVER = 2


@dataclass(frozen=True)
class Paddle:
    """Catch paddle, centre-anchored"""
    x: float
    y: float
    width: float = 140.0
    height: float = 16.0

    def rect(self) -> Tuple[float, float, float, float]:
        """(left, top, width, height)"""
        return (self.x - self.width / 2, self.y - self.height / 2, self.width, self.height)

    @classmethod
    def follow(cls, pointer_x: float, playfield: PlayfieldConfig, config: PaddleConfig) -> "Paddle":
        """Paddle centred under the pointer, kept fully inside the playfield."""
        half = config.width / 2
        x = min(max(float(pointer_x), half), playfield.width - half)
        return cls(x=x, y=playfield.height - config.bottom_offset, width=config.width, height=config.height)


@dataclass
class TickResult:
    """What happened during one tick"""
    audio_active: bool = False
    reading: Optional[OnsetReading] = None
    rising_edge: bool = False
    notes_spawned: int = 0
    spotlights_spawned: int = 0
    caught: int = 0
    missed: int = 0
    game_over: bool = False


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view for HUD and renderers"""
    state: GameState
    score: int
    lives: int
    max_lives: int
    track: Optional[TrackConfig]
    notes: Tuple[Note, ...] = ()
    spotlights: Tuple[Spotlight, ...] = ()


@dataclass
class SessionStats:
    """Per-game counters for the end-of-game summary"""
    started_at_ms: float = 0.0
    ticks: int = 0
    active_ticks: int = 0
    onset_ticks: int = 0
    rising_edges: int = 0
    notes_spawned: int = 0
    notes_caught: int = 0
    notes_missed: int = 0
    spawns_dropped: int = 0
    spotlights_spawned: int = 0
    peak_energy: float = 0.0
    energy_sum: float = 0.0

    def record_energy(self, raw: float) -> None:
        self.active_ticks += 1
        self.energy_sum += raw
        if raw > self.peak_energy:
            self.peak_energy = raw


StateCallback = Callable[[GameState, GameState], None]


class GameSession:
    def __init__(
        self,
        config: Optional[Config] = None,
        energy_source: Optional[EnergySource] = None,
        state_callback: Optional[StateCallback] = None,
        rng: Optional[random.Random] = None,
        reporter: Optional[SessionReporter] = None,
    ):
        self.config = config or Config()
        self.energy_source = energy_source
        self.state_callback = state_callback
        self.rng = rng or random.Random()
        self.reporter = reporter

        self.detector = OnsetDetector(self.config.onset)
        self.scheduler = SpawnScheduler(self.config.spawn)
        self.spotlight_trigger = SpotlightTrigger(self.config.spotlights)
        self.notes: EntityPool[Note] = EntityPool(self.config.notes.pool_capacity, name="notes")
        self.spotlights: EntityPool[Spotlight] = EntityPool(self.config.spotlights.pool_capacity, name="spotlights")

        self.state = GameState.MENU
        self.score = 0
        self.lives = self.config.session.max_lives
        self.selected_index = 0
        self.stats = SessionStats()

        self._prev_onset = False
        self._last_tick_ms: Optional[float] = None

    # ------------------------------------------------------------------
    # Track selection (menu only)
    # ------------------------------------------------------------------
    def selected_track(self) -> Optional[TrackConfig]:
        tracks = self.config.tracks
        if not tracks:
            return None
        return tracks[self.selected_index % len(tracks)]

    def select_next_track(self) -> bool:
        return self._step_selection(1)

    def select_previous_track(self) -> bool:
        return self._step_selection(-1)

    def _step_selection(self, step: int) -> bool:
        if self.state != GameState.MENU or not self.config.tracks:
            return False
        self.selected_index = (self.selected_index + step) % len(self.config.tracks)
        return True

    def set_energy_source(self, energy_source: Optional[EnergySource]) -> None:
        self.energy_source = energy_source

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def reset_for_play(self, now: float = 0.0) -> None:
        """Fresh-game state. Pending spawns are discarded, not drained."""
        self.score = 0
        self.lives = self.config.session.max_lives
        self._reset_pipeline(now)
        self.stats = SessionStats(started_at_ms=float(now))
        self._last_tick_ms = None

    def _reset_pipeline(self, now: float = 0.0) -> None:
        self.notes.clear()
        self.spotlights.clear()
        self.detector.reset()
        self.scheduler.reset(now)
        self.spotlight_trigger.reset(now)
        self._prev_onset = False

    def _set_state(self, new_state: GameState) -> None:
        old_state = self.state
        self.state = new_state
        track = self.selected_track()
        log_event("INFO", "Session", f"{old_state.name} -> {new_state.name}",
                  score=self.score, lives=self.lives, track=track.title if track else None)
        if self.state_callback is not None:
            self.state_callback(old_state, new_state)

    def start_game(self, now: float = 0.0) -> bool:
        if self.state not in (GameState.MENU, GameState.GAME_OVER):
            log_event("DEBUG", "Session", "start_game ignored", state=self.state.name)
            return False
        self.reset_for_play(now)
        self._set_state(GameState.PLAYING)
        return True

    def restart_game(self, now: float = 0.0) -> bool:
        if self.state not in (GameState.GAME_OVER, GameState.PLAYING):
            log_event("DEBUG", "Session", "restart_game ignored", state=self.state.name)
            return False
        if self.state == GameState.PLAYING:
            self._finish_game("restart")
        self.reset_for_play(now)
        self._set_state(GameState.PLAYING)
        return True

    def go_to_menu(self, end_reason: str = "menu") -> bool:
        if self.state not in (GameState.GAME_OVER, GameState.PLAYING):
            log_event("DEBUG", "Session", "go_to_menu ignored", state=self.state.name)
            return False
        if self.state == GameState.PLAYING:
            self._finish_game(end_reason)
        # Score stays on display until the next game starts
        self._reset_pipeline()
        self._set_state(GameState.MENU)
        return True

    def on_life_lost(self) -> bool:
        """Take one life. Returns True when this ended the game."""
        if self.state != GameState.PLAYING:
            return False
        self.lives = max(0, self.lives - 1)
        log_event("DEBUG", "Session", "Life lost", lives=self.lives)
        if self.lives > 0:
            return False
        self._finish_game("lives_exhausted")
        self._reset_pipeline()
        self._set_state(GameState.GAME_OVER)
        return True

    # ------------------------------------------------------------------
    # Tick pipeline
    # ------------------------------------------------------------------
    def tick(self, now: float, paddle: Optional[Paddle] = None, dt: Optional[float] = None) -> TickResult:
        """Advance one frame. `now` is caller-supplied milliseconds; `dt` seconds."""
        result = TickResult()
        if self.state != GameState.PLAYING:
            return result

        if dt is None:
            if self._last_tick_ms is None:
                dt = 1.0 / self.config.session.nominal_fps
            else:
                dt = (now - self._last_tick_ms) / 1000.0
        dt = max(0.0, float(dt))
        self._last_tick_ms = now
        self.stats.ticks += 1

        if self.energy_source is not None and self.energy_source.is_active():
            self._run_audio_stage(now, dt, result)

        self.notes.tick(dt)
        if self._resolve_notes(paddle, result):
            return result

        self.spotlights.tick(dt)
        self.spotlights.reap(lambda spot: spot.dead)
        return result

    def _run_audio_stage(self, now: float, dt: float, result: TickResult) -> None:
        onset_cfg = self.config.onset
        raw = self.energy_source.band_energy(onset_cfg.freq_low, onset_cfg.freq_high)
        reading = self.detector.update(raw, dt)
        self.stats.record_energy(reading.raw)

        rising_edge = reading.is_onset and not self._prev_onset
        self._prev_onset = reading.is_onset
        result.audio_active = True
        result.reading = reading
        result.rising_edge = rising_edge
        if reading.is_onset:
            self.stats.onset_ticks += 1
        if rising_edge:
            self.stats.rising_edges += 1
            log_event("DEBUG", "Onset", "Rising edge", now=f"{now:.0f}",
                      smoothed=f"{reading.smoothed:.3f}", rise=f"{reading.rise:.3f}")

        flashes = self.spotlight_trigger.on_tick(now, reading.is_onset, reading.smoothed, self.rng)
        for _ in range(flashes):
            spot = make_spotlight(self.rng, self.config.playfield, self.config.spotlights)
            if self.spotlights.allocate(spot):
                result.spotlights_spawned += 1
        self.stats.spotlights_spawned += result.spotlights_spawned

        if self.scheduler.on_tick(now, rising_edge, self.notes.count()):
            note = make_note(self.rng, self.config.playfield, self.config.notes)
            if self.notes.allocate(note):
                result.notes_spawned += 1
                self.stats.notes_spawned += 1
                log_event("DEBUG", "Spawn", "Note spawned", now=f"{now:.0f}",
                          x=f"{note.x:.0f}", active=self.notes.count())
            else:
                self.stats.spawns_dropped += 1

    def _resolve_notes(self, paddle: Optional[Paddle], result: TickResult) -> bool:
        """Catch and miss handling. Returns True when the game ended this tick."""
        if paddle is not None:
            rx, ry, rw, rh = paddle.rect()
            caught = self.notes.reap(lambda n: circle_intersects_rect(n.x, n.y, n.r, rx, ry, rw, rh))
            self.score += len(caught)
            result.caught = len(caught)
            self.stats.notes_caught += len(caught)

        height = self.config.playfield.height
        missed = self.notes.reap(lambda n: n.off_screen(height))
        for _ in missed:
            result.missed += 1
            self.stats.notes_missed += 1
            if self.on_life_lost():
                result.game_over = True
                return True
        return False

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def summary(self, end_reason: str = "") -> dict:
        stats = self.stats
        ended_at = self._last_tick_ms if self._last_tick_ms is not None else stats.started_at_ms
        track = self.selected_track()
        mean_energy = stats.energy_sum / stats.active_ticks if stats.active_ticks else 0.0
        return {
            "started_at_ms": stats.started_at_ms,
            "ended_at_ms": ended_at,
            "duration_s": round(max(0.0, ended_at - stats.started_at_ms) / 1000.0, 3),
            "end_reason": end_reason,
            "track": track.title if track else "",
            "score": self.score,
            "lives_left": self.lives,
            "ticks": stats.ticks,
            "active_ticks": stats.active_ticks,
            "onset_ticks": stats.onset_ticks,
            "rising_edges": stats.rising_edges,
            "notes_spawned": stats.notes_spawned,
            "notes_caught": stats.notes_caught,
            "notes_missed": stats.notes_missed,
            "spawns_dropped": stats.spawns_dropped,
            "spotlights_spawned": stats.spotlights_spawned,
            "peak_energy": round(stats.peak_energy, 3),
            "mean_energy": round(mean_energy, 3),
        }

    def _finish_game(self, end_reason: str) -> None:
        summary = self.summary(end_reason)
        log_event("INFO", "Session", "Game summary", **summary)
        if self.reporter is None or not self.config.report_generation_enabled:
            return
        try:
            self.reporter.save_session(summary)
        except OSError as e:
            log_event("ERROR", "Report", "Failed to write session report", error=e)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.state,
            score=self.score,
            lives=self.lives,
            max_lives=self.config.session.max_lives,
            track=self.selected_track(),
            notes=tuple(self.notes),
            spotlights=tuple(self.spotlights),
        )
