import csv
import json
import time
from pathlib import Path


class SessionReporter:
    """Persists per-game summaries to JSON and CSV reports."""

    FIELDNAMES = [
        "started_at_ms",
        "ended_at_ms",
        "duration_s",
        "end_reason",
        "track",
        "score",
        "lives_left",
        "ticks",
        "active_ticks",
        "onset_ticks",
        "rising_edges",
        "notes_spawned",
        "notes_caught",
        "notes_missed",
        "spawns_dropped",
        "spotlights_spawned",
        "peak_energy",
        "mean_energy",
    ]

    def __init__(self, report_dir: Path, max_sessions: int = 200):
        self.report_dir = Path(report_dir)
        self.report_dir.mkdir(parents=True, exist_ok=True)
        self.json_path = self.report_dir / "session_report.json"
        self.csv_path = self.report_dir / "session_report.csv"
        self.max_sessions = max(1, int(max_sessions))

    def _load_existing_sessions(self) -> list[dict]:
        if not self.json_path.exists():
            return []
        try:
            with open(self.json_path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError):
            return []
        sessions = payload.get("sessions", []) if isinstance(payload, dict) else []
        return sessions if isinstance(sessions, list) else []

    def _to_builtin(self, value):
        if isinstance(value, dict):
            return {str(k): self._to_builtin(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._to_builtin(v) for v in value]

        # numpy scalars and arrays
        tolist = getattr(value, "tolist", None)
        if callable(tolist):
            return self._to_builtin(tolist())

        return value

    def load_sessions(self) -> list[dict]:
        return self._load_existing_sessions()

    def best_score(self) -> int:
        scores = [int(s.get("score", 0)) for s in self.load_sessions() if isinstance(s, dict)]
        return max(scores) if scores else 0

    def save_session(self, session_summary: dict) -> None:
        sessions = self._load_existing_sessions()
        sessions.append(self._to_builtin(session_summary))
        if len(sessions) > self.max_sessions:
            sessions = sessions[-self.max_sessions :]

        payload = {
            "generated_at": time.time(),
            "session_count": len(sessions),
            "latest": sessions[-1],
            "sessions": sessions,
        }

        with open(self.json_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

        with open(self.csv_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=self.FIELDNAMES)
            writer.writeheader()
            for row in sessions:
                writer.writerow({key: row.get(key, "") for key in self.FIELDNAMES})
