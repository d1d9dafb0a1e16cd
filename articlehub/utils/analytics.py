from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional


@dataclass
class SummaryLogRecord:
    ts: float
    provider: str
    article_id: str
    latency_ms: float
    input_chars: int
    summary_chars: int
    outcome: str  # "ok" or an error kind


class AnalyticsStore:
    """Append-only log of summarization attempts plus running aggregates."""

    def __init__(self, log_dir: Path, summaries_jsonl: str, usage_json: str):
        self.log_dir = log_dir
        self.summaries_path = log_dir / summaries_jsonl
        self.usage_path = log_dir / usage_json
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def append_summary(self, rec: SummaryLogRecord) -> None:
        with self._lock:
            with self.summaries_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(asdict(rec), ensure_ascii=False) + "\n")
            self._update_usage(rec)

    def _update_usage(self, rec: SummaryLogRecord) -> None:
        base: dict[str, Any] = {
            "updated_at": time.time(),
            "request_count": 0,
            "failure_count": 0,
            "avg_latency_ms": 0.0,
            "avg_summary_chars": 0.0,
            "by_provider": {},
        }
        current = self.read_usage()
        if current:
            base.update(current)

        n = int(base.get("request_count", 0))
        n2 = n + 1
        base["request_count"] = n2
        if rec.outcome != "ok":
            base["failure_count"] = int(base.get("failure_count", 0)) + 1
        base["avg_latency_ms"] = (float(base["avg_latency_ms"]) * n + rec.latency_ms) / n2
        base["avg_summary_chars"] = (float(base["avg_summary_chars"]) * n + rec.summary_chars) / n2
        by_provider = dict(base.get("by_provider") or {})
        by_provider[rec.provider] = int(by_provider.get(rec.provider, 0)) + 1
        base["by_provider"] = by_provider
        base["updated_at"] = rec.ts

        self.usage_path.write_text(json.dumps(base, indent=2), encoding="utf-8")

    def read_usage(self) -> Optional[dict[str, Any]]:
        if not self.usage_path.exists():
            return None
        try:
            return json.loads(self.usage_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
