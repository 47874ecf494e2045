import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    "ws_connections_active": 0.0,
    "sessions_started": 0.0,
    "sessions_ended": 0.0,
    "flush_cycles_total": 0.0,
    "transcription_failures": 0.0,
    "generation_failures": 0.0,
    "empty_transcripts": 0.0,
    "dont_know_answers": 0.0,
    "followups_generated": 0.0,
    "utterances_sent": 0.0,
    "transport_failures": 0.0,
    "invalid_fragments": 0.0,
    "recordings_saved": 0.0,
    "pipeline_latency_total_ms": 0.0,
    "pipeline_latency_samples": 0.0,
}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        next_value = float(_metrics.get(key, 0.0)) - float(amount)
        _metrics[key] = max(0.0, next_value)


def observe_pipeline_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["pipeline_latency_total_ms"] = float(_metrics.get("pipeline_latency_total_ms", 0.0)) + latency
        _metrics["pipeline_latency_samples"] = float(_metrics.get("pipeline_latency_samples", 0.0)) + 1.0


def get_metric(name: str) -> float:
    with _lock:
        return float(_metrics.get(str(name or "").strip(), 0.0))


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    latency_samples = max(1.0, float(data.get("pipeline_latency_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    for key, value in data.items():
        payload[key] = float(value) if key.endswith("_ms") else int(value)
    payload["avg_pipeline_latency_ms"] = round(float(data.get("pipeline_latency_total_ms") or 0.0) / latency_samples, 2)

    if extra:
        payload.update(extra)
    return payload
