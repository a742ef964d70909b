#!/usr/bin/env python3
"""
Beat Catcher - headless session runner

Drives a GameSession with scripted bass energy instead of a live track and
prints the end-of-game summary. Useful for tuning onset thresholds and spawn
timing without audio or a window.
"""

import argparse
import cProfile
import random
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np

from config_persistence import get_report_dir, load_config
from energy_source import ScriptedEnergySource, synthetic_kick_energy
from game_session import GameSession, GameState, Paddle
from logging_utils import log_event, set_log_level
from session_reporter import SessionReporter


def read_energy_file(path: Path) -> np.ndarray:
    """One energy value per line; blank lines and '#' comments skipped, first CSV column used."""
    values: List[float] = []
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            text = line.split("#", 1)[0].strip()
            if not text:
                continue
            cell = text.split(",", 1)[0].strip()
            try:
                values.append(float(cell))
            except ValueError:
                raise ValueError(f"{path}:{line_number}: not a number: {cell!r}") from None
    return np.asarray(values, dtype=np.float64)


def simulate(
    session: GameSession,
    source: ScriptedEnergySource,
    ticks: int,
    tick_ms: float,
    paddle_x: Optional[float] = None,
) -> dict:
    """Start a game and tick it until the script runs out, ticks elapse or the game ends."""
    cfg = session.config
    session.set_energy_source(source)
    session.start_game(now=0.0)

    now = 0.0
    for _ in range(ticks):
        now += tick_ms
        paddle = None
        if paddle_x is not None:
            paddle = Paddle.follow(paddle_x, cfg.playfield, cfg.paddle)
        result = session.tick(now, paddle)
        if result.game_over or session.state != GameState.PLAYING:
            break
        if source.exhausted and session.notes.count() == 0:
            break

    end_reason = "lives_exhausted" if session.state == GameState.GAME_OVER else "script_end"
    summary = session.summary(end_reason)
    if session.state == GameState.PLAYING:
        session.go_to_menu(end_reason)
    return summary


def run_app(args: argparse.Namespace) -> int:
    config = load_config()
    set_log_level(args.log_level or config.log_level)

    if args.energy_file:
        energy = read_energy_file(Path(args.energy_file))
    else:
        energy = synthetic_kick_energy(args.ticks, tick_ms=args.tick_ms, bpm=args.bpm, seed=args.seed)
    log_event("INFO", "Run", "Energy script ready", samples=len(energy),
              peak=f"{float(np.max(energy)) if len(energy) else 0.0:.1f}")

    reporter = None
    if config.report_generation_enabled and not args.no_report:
        report_dir = Path(args.report_dir) if args.report_dir else get_report_dir()
        reporter = SessionReporter(report_dir)

    session = GameSession(config, rng=random.Random(args.seed), reporter=reporter)
    summary = simulate(
        session,
        ScriptedEnergySource(energy),
        ticks=max(args.ticks, len(energy)),
        tick_ms=args.tick_ms,
        paddle_x=args.paddle_x,
    )

    for key, value in summary.items():
        print(f"{key:>20}: {value}")
    if reporter is not None:
        history = reporter.load_sessions()
        print(f"{'best_score':>20}: {reporter.best_score()} ({len(history)} games on record)")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a headless Beat Catcher session")
    parser.add_argument("--energy-file", help="Text/CSV file with one bass energy value (0-255) per line")
    parser.add_argument("--ticks", type=int, default=1800, help="Ticks to simulate (default: 1800)")
    parser.add_argument("--tick-ms", type=float, default=16.0, help="Milliseconds per tick (default: 16)")
    parser.add_argument("--bpm", type=float, default=120.0, help="Tempo of the synthetic kick (default: 120)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for spawns and synthetic energy")
    parser.add_argument("--paddle-x", type=float, default=None, help="Hold the paddle at this x (default: no paddle)")
    parser.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR (default: from config)")
    parser.add_argument("--report-dir", default=None, help="Directory for session reports")
    parser.add_argument("--no-report", action="store_true", help="Do not write session reports")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile and save stats to --profile-out",
    )
    parser.add_argument(
        "--profile-out",
        default="profile.prof",
        help="Path to save cProfile stats (default: profile.prof)",
    )
    args = parser.parse_args(argv)

    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        exit_code = run_app(args)
        profiler.disable()
        profiler.dump_stats(args.profile_out)
    else:
        exit_code = run_app(args)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
