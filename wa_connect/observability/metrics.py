"""
Onboarding Metrics Snapshot
---------------------------
Lightweight Redis counters/timers for connection onboarding, plus a single
snapshot function consumed by /admin/metrics. Missing keys (first boot)
read as zero so the snapshot shape stays stable for dashboards.
"""
from __future__ import annotations
import time
from typing import List, Tuple
from wa_connect.store.redis_conn import get_redis
from wa_connect.settings import settings

PATHS = ("automated", "manual")

K_ATTEMPT = "metrics:onboarding:attempts:{path}"     # INCR
K_SUCCESS = "metrics:onboarding:success:{path}"      # INCR
K_ERROR = "metrics:onboarding:errors:{path}"         # INCR
K_CANCEL = "metrics:onboarding:cancelled"            # INCR
K_EXCHANGE_LAT = "metrics:onboarding:exchange:latencies"  # LPUSH ms

_MAX_SAMPLES = 500

def _percentile(data: List[float], p: float) -> float:
    """Deterministic percentile (nearest-rank on sorted data)."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])

def _enabled() -> bool:
    return bool(getattr(settings, "ENABLE_METRICS", True))

def increment_attempt(path: str) -> None:
    if not _enabled():
        return
    get_redis().incr(K_ATTEMPT.format(path=path), 1)

def increment_success(path: str) -> None:
    if not _enabled():
        return
    get_redis().incr(K_SUCCESS.format(path=path), 1)

def increment_error(path: str) -> None:
    if not _enabled():
        return
    get_redis().incr(K_ERROR.format(path=path), 1)

def increment_cancelled() -> None:
    if not _enabled():
        return
    get_redis().incr(K_CANCEL, 1)

def record_exchange_latency(ms: int) -> None:
    if not _enabled():
        return
    try:
        ms = int(ms)
    except Exception:
        return
    r = get_redis()
    r.lpush(K_EXCHANGE_LAT, ms)
    r.ltrim(K_EXCHANGE_LAT, 0, _MAX_SAMPLES - 1)

def _read_latency_list() -> List[float]:
    r = get_redis()
    raw = r.lrange(K_EXCHANGE_LAT, 0, _MAX_SAMPLES - 1) or []
    out: List[float] = []
    for x in raw:
        try:
            out.append(float(x) / 1000.0)
        except Exception:
            continue
    return out

def _p50_p95(latencies_s: List[float]) -> Tuple[float, float]:
    if not latencies_s:
        return 0.0, 0.0
    return _percentile(latencies_s, 0.50), _percentile(latencies_s, 0.95)

def get_onboarding_snapshot() -> dict:
    """
    Return a dict shaped for /admin/metrics consumers.
    Fields:
      - per-path attempts/successes/errors and success rate (percent)
      - cancellations (operator dismissed login or setup)
      - p50/p95 token exchange latency in seconds
    """
    r = get_redis()
    paths = {}
    for path in PATHS:
        att = int(r.get(K_ATTEMPT.format(path=path)) or 0)
        ok = int(r.get(K_SUCCESS.format(path=path)) or 0)
        err = int(r.get(K_ERROR.format(path=path)) or 0)
        rate = (ok / att) * 100.0 if att > 0 else 0.0
        paths[path] = {
            "attempts": att,
            "successes": ok,
            "errors": err,
            "success_rate": round(rate, 3),
        }

    p50, p95 = _p50_p95(_read_latency_list())
    return {
        "paths": paths,
        "cancelled": int(r.get(K_CANCEL) or 0),
        "p50_exchange_latency": round(p50, 3),
        "p95_exchange_latency": round(p95, 3),
        "snapshot_at": int(time.time()),
    }
